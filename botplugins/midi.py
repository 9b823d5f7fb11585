"""Simple note-text to MIDI conversion, MIDI to note-text, and ear-training helpers."""

from __future__ import annotations

import io
import math
import subprocess
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Iterator

import mido

TICKS_PER_BEAT = 960
DEFAULT_TIMBRE = 40
TEMPO_BPM = 72
VELOCITY = 120

NOTE_MAP = {
    "C": 60,
    "Db": 61,
    "D": 62,
    "Eb": 63,
    "E": 64,
    "F": 65,
    "Gb": 66,
    "G": 67,
    "Ab": 68,
    "A": 69,
    "Bb": 70,
    "B": 71,
}
_NAME_BY_CLASS = {value % 12: key for key, value in NOTE_MAP.items()}
_DIGITS = "0123456789"


class MidiParseError(ValueError):
    """Raised when note text contains a character that cannot be parsed."""


class PracticeMode(IntEnum):
    PERSONAL = 0
    TEAM = 1


@dataclass
class TimbreStore:
    """Per-chat instrument (MIDI program) settings.

    Private chats (group id 0) are keyed by the negated user id.
    """

    _data: dict[int, int] = field(default_factory=dict)

    @staticmethod
    def _key(group_id: int, user_id: int) -> int:
        return group_id if group_id != 0 else -user_id

    def set(self, group_id: int, user_id: int, timbre: int) -> None:
        if timbre < 0 or timbre > 127:
            raise ValueError("音色应该在0~127之间")
        self._data[self._key(group_id, user_id)] = timbre

    def get(self, group_id: int, user_id: int) -> int:
        return self._data.get(self._key(group_id, user_id), DEFAULT_TIMBRE)


def note_number(base: int, octave: int) -> int:
    """MIDI key for a pitch class and octave, with byte wrap-around."""
    base &= 0xFF
    octave &= 0xFF
    if octave > 10:
        octave = 10
    if octave == 0:
        return base
    res = (base + 12 * octave) & 0xFF
    if res > 127:
        res -= 12
    return res


def note_name(n: int) -> str:
    """Name of the pitch class of key n, flats preferred."""
    return _NAME_BY_CLASS[n % 12]


def parse_note(note: str) -> int:
    """Key number of a single note such as ``C#6``; unknown characters are ignored."""
    base = 0
    level = 0
    for c in note.replace(" ", ""):
        if "A" <= c <= "G":
            base = NOTE_MAP[c] % 12
        elif c == "b":
            base = (base - 1) & 0xFF
        elif c == "#":
            base = (base + 1) & 0xFF
        elif c in _DIGITS:
            level = (level * 10 + int(c)) & 0xFF
    return note_number(base, level or 5)


def _atoi(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return 0


def _scaled(ticks: int, power: int) -> int:
    if power >= 0:
        return (ticks << power) & 0xFFFFFFFF
    return ticks >> -power


def _score(text: str) -> Iterator[tuple[int, int, int]]:
    """Yield (delay, key, duration) in ticks for each note of the text."""
    k = text.replace(" ", "")
    i = 0
    delay = 0
    while i < len(k):
        base = 0
        level = 0
        rest = False
        length_chars: list[str] = []
        while True:
            c = k[i]
            if c == "R":
                rest = True
                i += 1
            elif "A" <= c <= "G":
                base = NOTE_MAP[c] % 12
                i += 1
            elif c == "b":
                base = (base - 1) & 0xFF
                i += 1
            elif c == "#":
                base = (base + 1) & 0xFF
                i += 1
            elif c in _DIGITS:
                level = (level * 10 + int(c)) & 0xFF
                i += 1
            elif c == "<":
                i += 1
                while i < len(k) and k[i] in "-" + _DIGITS:
                    length_chars.append(k[i])
                    i += 1
            else:
                raise MidiParseError(f"无法解析第{i}个位置的{c}字符")
            if i >= len(k) or "A" <= k[i] <= "G" or k[i] == "R":
                break
        ticks = _scaled(TICKS_PER_BEAT, _atoi("".join(length_chars)))
        if rest:
            delay = ticks
            continue
        yield delay, note_number(base, level or 5), ticks
        delay = 0


def make_midi(path, text: str, program: int = DEFAULT_TIMBRE) -> None:
    """Write a single-track MIDI file for the note text; an existing file is kept."""
    path = Path(path)
    if path.exists():
        return
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("time_signature", numerator=4, denominator=4, time=0))
    track.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(TEMPO_BPM), time=0))
    track.append(mido.MetaMessage("instrument_name", name="Violin", time=0))
    track.append(mido.Message("program_change", channel=0, program=program & 0x7F, time=0))
    for delay, key, duration in _score(text):
        key &= 0x7F
        track.append(mido.Message("note_on", channel=0, note=key, velocity=VELOCITY, time=delay))
        track.append(mido.Message("note_off", channel=0, note=key, velocity=0, time=duration))
    track.append(mido.MetaMessage("end_of_track", time=0))
    song = mido.MidiFile(type=1, ticks_per_beat=TICKS_PER_BEAT)
    song.tracks.append(track)
    song.save(str(path))


def _round_half_away(x: float) -> int:
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def _exponent(length: float) -> int | None:
    if length <= 0:
        return None
    return _round_half_away(math.log2(length))


def midi_to_text(data: bytes, track_no: int) -> str:
    """Note text describing one track of a MIDI file; empty for a missing track."""
    song = mido.MidiFile(file=io.BytesIO(data))
    if not 0 <= track_no < len(song.tracks):
        return ""
    parts: list[str] = []
    tick = 0
    start = end = 0.0
    start_note = end_note = 0
    for msg in song.tracks[track_no]:
        tick += msg.time
        if msg.is_meta:
            continue
        note_on = msg.type == "note_on" and msg.velocity > 0
        note_off = msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0)
        if note_on:
            start = float(tick)
            start_note = msg.note
        if note_off:
            end = float(tick)
            end_note = msg.note
            if start_note == end_note:
                parts.append(note_name(msg.note))
                level = msg.note // 12
                if level != 5:
                    parts.append(str(level))
                power = _exponent((end - start) / TICKS_PER_BEAT)
                if power is not None and power >= -4 and power != 0:
                    parts.append(f"<{power}")
                start_note = end_note = 0
        if note_on and start > end:
            power = _exponent((start - end) / TICKS_PER_BEAT)
            if power == 0:
                parts.append("R")
            elif power is not None and power >= -4:
                parts.append(f"R<{power}")
    return "".join(parts)


def render_wav(midi_path, wav_path) -> None:
    """Render a MIDI file to WAV with timidity."""
    subprocess.run(
        ["timidity", str(midi_path), "-Ow", "-o", str(wav_path)],
        check=True,
        capture_output=True,
    )


def text_to_music(text: str, midi_path, program: int = DEFAULT_TIMBRE) -> Path:
    """Write the MIDI file for text and render it; return the WAV path."""
    make_midi(midi_path, text, program)
    wav_path = Path(str(midi_path).replace(".mid", ".wav"))
    render_wav(midi_path, wav_path)
    return wav_path


def round_score(mode: int, error_count: int, max_error_count: int) -> float:
    """Points earned for a finished round of listening practice."""
    if mode == PracticeMode.PERSONAL:
        return {0: 1.0, 1: 0.5, 2: 0.2}.get(error_count, 0.0)
    if mode == PracticeMode.TEAM:
        return 1.0 if error_count != max_error_count else 0.0
    return 0.0