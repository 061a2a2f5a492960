"""REPL with prompt_toolkit for user interaction."""

import os
import sys
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import InMemoryHistory

from cli.commands import (
    get_client,
    handle_bucket,
    handle_cat,
    handle_get,
    handle_info,
    handle_put,
    handle_range,
)
from cli.constants import (
    COMMANDS,
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
from cli.models import (
    BucketCommand,
    CatCommand,
    GetCommand,
    InfoCommand,
    PutCommand,
    RangeCommand,
)
from cli.parser import ParseError, parse_command


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_logo() -> None:
    """Display GridFS logo with ANSI colors."""
    print(LOGO)


def dispatch_command(cmd_obj) -> str:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, PutCommand):
        return handle_put(cmd_obj)
    elif isinstance(cmd_obj, InfoCommand):
        return handle_info(cmd_obj)
    elif isinstance(cmd_obj, CatCommand):
        return handle_cat(cmd_obj)
    elif isinstance(cmd_obj, GetCommand):
        return handle_get(cmd_obj)
    elif isinstance(cmd_obj, RangeCommand):
        return handle_range(cmd_obj)
    elif isinstance(cmd_obj, BucketCommand):
        return handle_bucket(cmd_obj)
    else:
        return f"Unknown command type: {type(cmd_obj)}"


def show_welcome() -> None:
    """Logo, title and the server the session talks to."""
    config = get_client().config
    show_logo()
    print(WELCOME_TITLE)
    print(f"Server: {config.get_target()} (address {config.get_address()})")
    print(WELCOME_HELP)


def prompt_text() -> str:
    """Prompt showing the default bucket."""
    return PROMPT_TEXT.format(bucket=get_client().config.get_bucket())


def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    completer = WordCompleter(COMMANDS, ignore_case=True)
    history = InMemoryHistory()
    session: PromptSession = PromptSession(
        completer=completer, history=history, style=STYLE
    )

    clear_screen()
    show_welcome()

    while True:
        try:
            user_input = session.prompt([("class:prompt", prompt_text())])

            if not user_input.strip():
                continue

            if user_input.strip() == "exit":
                print("Goodbye!")
                break

            if user_input.strip() == "help":
                print(HELP_TEXT)
                continue

            if user_input.strip() == "clear":
                clear_screen()
                show_welcome()
                continue

            cmd_obj = parse_command(user_input)
            result = dispatch_command(cmd_obj)
            print(result)

        except ParseError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break
