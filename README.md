# botplugins

Building blocks for a group-chat bot. Each module holds the logic of one
plugin, free of any particular bot framework: you feed it the text, ids and
callbacks from your own bot and send on whatever it hands back.

Install with `pip install .`; add the `test` extra (`pip install .[test]`)
to run the test suite with `pytest`.

## What is inside

| Module | Purpose |
| --- | --- |
| `botplugins.timer` | Reminder timers packed into one integer, Chinese date parsing, SQLite storage |
| `botplugins.clock` | Next wake time of a timer, a five-field cron parser, a clock that runs, lists and cancels timers |
| `botplugins.midi` | Note text such as `CCGGAAGR` to a MIDI file and back, WAV rendering, ear-training scoring |
| `botplugins.manager` | Welcome and farewell templates, ban lengths, feature flags, gist-verified joins, a random pick |
| `botplugins.moyu` | Holiday countdowns and the daily "slacker" reminder text |
| `botplugins.nsfw` | Turns image classifier scores into a short verdict |
| `botplugins.hyaku` | The Ogura Hyakunin Isshu poems loaded from CSV |
| `botplugins.jandan` | A SQLite store of jandan.net picture URLs and its page-walking updater |
| `botplugins.nativesetu` | Indexes local image folders by difference hash |
| `botplugins.nativewife` | Per-group picture gallery with a daily pick per user |
| `botplugins.omikuji` | Sensō-ji fortune slip image URLs and stored interpretations |
| `botplugins.lolicon` | A bounded, prefetched queue of random image references |

## Reminder timers

`filled_timer(date_strs, botqq, grp, match_date_only)` builds a `Timer` from
the groups a chat command's regular expression captured: month, day or
weekday, hour, minute, an optional `用http...` picture URL and the text to
send. Numbers may be digits or Chinese numerals (`chinese_num_to_int`);
invalid input gives a disabled timer whose `alert` says what was wrong.

```python
from datetime import datetime

from botplugins.timer import TimerStore, filled_timer
from botplugins.clock import Clock, next_wake_time

timer = filled_timer(["", "12", "-1", "12", "0", "", "test"], 0, 0, False)
print(timer.en(), timer.month(), timer.hour(), timer.minute())
print(timer.timer_info(), timer.timer_id())
print(next_wake_time(timer, datetime.now()))

store = TimerStore("timers.db")
clock = Clock(store, send=lambda group_id, segments: print(group_id, segments))
clock.register_timer(timer, True)
print(clock.list_timers(0))
clock.cancel_timer(timer.id)
clock.close()
store.close()
```

`Clock(store, send)` loads and starts every timer already in the store.
`register_timer(timer, save)` runs a timer in a background thread (saving it
to the store when `save` is true) until `cancel_timer(key)` or `close()`.
When a reminder is due, `send(group_id, segments)` is called with message
segments: an @all, the alert text and, if the timer has a URL, an image.
Cron reminders are built with `filled_cron_timer` and scheduled through
`CronSchedule`, which understands five fields, ranges, lists, steps, month
and weekday names and the `@daily`-style shortcuts.

## MIDI

```python
from botplugins.midi import make_midi, midi_to_text, parse_note, note_name

make_midi("song.mid", "CCGGAAGR FFEEDDCR", 40)
with open("song.mid", "rb") as fh:
    print(midi_to_text(fh.read(), 0))

print(parse_note("C#6"), note_name(61))
```

Note text uses `A`–`G` for pitches, `b` and `#` for flats and sharps, a
number for the octave (5 when left out), `R` for a rest and `<n` for a length
of 2ⁿ quarter notes. Any other character raises `MidiParseError`. An existing
MIDI file is not overwritten. `TimbreStore` keeps the instrument per chat
(default 40, range 0–127) and `round_score` scores a round of listening
practice. Rendering to WAV with `render_wav` or `text_to_music` runs the
`timidity` program, which must be on the `PATH`.

## Group management

`ManagerStore` keeps welcome and farewell templates and verified members in
SQLite. `welcome_to_cq` expands `{at}`, `{nickname}`, `{avatar}`, `{uid}`,
`{gid}` and `{groupname}`; `ban_minutes` turns an amount and unit into
minutes capped at 43199; `set_flag` switches a feature bit on or off from
words such as `开启` or `关闭`. `parse_gist_answer` splits a join answer of
the form `user/gisthash`, and `check_new_user` fetches the gist file named
after the MD5 of the group id and accepts the user if it holds a unix
timestamp within ten minutes.

## Pictures and texts

- `PictureStore` and `update_pictures(store, fetch)` collect jandan.net
  picture URLs, stopping at the first one already stored; `fetch(url)`
  returns page HTML.
- `SetuLibrary(db_path)` indexes the image folders below a root
  (`scan_all`, `scan_class`) and picks or counts pictures per folder.
- `WifeGallery(base)` stores pictures per group and `pick` gives each
  nickname the same picture for a whole day.
- `load_poems(path)` reads the 100-poem CSV; `str(poem)` formats one poem.
- `KujiStore(path)` looks up a fortune slip's interpretation.
- `ImageQueue` prefetches image references from the lolicon API or a custom
  URL set with `set_custom_api`; `take(timeout)` raises `TimeoutError` when
  nothing arrives.

## What the package does not do

There is no command, bot runner or connection to a chat server: matching chat
messages and sending replies is left to your bot, which passes text, ids and
callbacks in. Nothing here classifies images, renders fortune texts to
pictures, or looks up holiday dates: `Holiday.from_record` takes the
`days_year_month_day` record you supply, and `nsfw.judge` takes scores you
obtained elsewhere. The poem CSV and the fortune database are not downloaded
for you, and there are no repository-search, abbreviation-guessing or card
lookup helpers.