# core/formatters.py

# all pure text utilities for operator-facing messages
# must never import from models!


# === name formatters ===


def format_display_name(first_name: str, last_name: str) -> str:
    return f"{last_name}, {first_name}"


def format_full_name(first_name: str, last_name: str) -> str:
    return f"{first_name} {last_name}"


# === status formatters ===


def format_called_label(called: int, total: int) -> str:
    return f"{called} / {total}"


def format_called_message(full_names: list[str]) -> str:
    if not full_names:
        return ""

    return f"{', '.join(full_names)} called"


def format_status_message(full_names: list[str], status_value: str) -> str:
    if not full_names:
        return ""

    if status_value == "CALLED":
        return format_called_message(full_names)

    return f"{', '.join(full_names)} set to {status_value}"
