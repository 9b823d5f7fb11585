"""Framework-independent logic for group-chat bot plugins: reminder timers and clock, MIDI, group management, daily reminders, classifier verdicts and picture or text collections."""

__version__ = "0.1.0"