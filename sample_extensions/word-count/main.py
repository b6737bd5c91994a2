# Word Count extension
# Registers commands, a menu item, a status bar item and scoped styles.

WORDS_PER_MINUTE = 200


def text_stats(text):
    words = len(text.split())
    sentences = len([s for s in text.replace("!", ".").replace("?", ".").split(".") if s.strip()])
    paragraphs = len([p for p in text.split("\n\n") if p.strip()])
    return {
        "words": words,
        "characters": len(text),
        "characters_no_spaces": len("".join(text.split())),
        "sentences": sentences,
        "paragraphs": paragraphs,
        "reading_minutes": max(1, -(-words // WORDS_PER_MINUTE)) if words else 0,
    }


status = {"id": "word-count-status", "text": "0 words"}


def current_text():
    return kairo.get_state()["notes"]["editor_content"] or ""


def show_stats():
    text = current_text()
    if not text.strip():
        kairo.log.warn("No text in the current note.")
        return None
    stats = text_stats(text)
    kairo.log.info("Word Count Results", stats)
    return stats


def show_reading_time():
    stats = text_stats(current_text())
    kairo.log.info(f"Estimated reading time: {stats['reading_minutes']} min ({stats['words']} words)")
    return stats["reading_minutes"]


def on_notes_change(notes):
    status["text"] = f"{text_stats(notes['editor_content'] or '')['words']} words"


def initialize(api):
    api.log.info("Word Count extension loaded")

    api.register_command(
        id="count-words",
        name="Count Words in Document",
        description="Shows word count statistics",
        category="Tools",
        shortcut="Ctrl+Shift+W",
        execute=show_stats,
    )
    api.register_command(
        id="reading-time",
        name="Estimate Reading Time",
        description="Calculate reading time for the current note",
        category="Tools",
        execute=show_reading_time,
    )
    api.register_menu_item("tools", "count-words", "Word Count", show_stats)
    api.register_slot("statusbar", "word-count-status", status, priority=5)
    api.subscribe("notes", on_notes_change)
    api.add_styles(".kairo-word-count { opacity: 0.7; font-variant-numeric: tabular-nums; }")


def cleanup(api):
    api.log.info("Word Count extension unloaded")


exports.initialize = initialize
exports.cleanup = cleanup
