"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["put", "info", "cat", "get", "range", "bucket", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#13AA52 bold",
        "command": "#0088ff bold",
    }
)

LEAF_GREEN = "\033[38;2;19;170;82m"
GREEN = "\033[92m"
RESET = "\033[0m"

LOGO = f"""{LEAF_GREEN}
  ██████╗ ██████╗ ██╗██████╗ ███████╗███████╗
 ██╔════╝ ██╔══██╗██║██╔══██╗██╔════╝██╔════╝
 ██║  ███╗██████╔╝██║██║  ██║█████╗  ███████╗
 ██║   ██║██╔══██╗██║██║  ██║██╔══╝  ╚════██║
 ╚██████╔╝██║  ██║██║██████╔╝██║     ███████║
  ╚═════╝ ╚═╝  ╚═╝╚═╝╚═════╝ ╚═╝     ╚══════╝
{RESET}"""

WELCOME_TITLE = "GridFS CLI - chunked file store over the bus"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "gridfs[{bucket}]> "

HELP_TEXT = """Available commands:
  put <path> [chunk_size]             Upload a local file, prints its file id
  info <file_id>                      Show the stored file record
  cat <file_id>                       Stream the file content to the screen
  get <file_id> <output_path>         Stream the file content into a local file
  range <file_id> <from> <to>         Print bytes from..to (inclusive) of the content
  bucket [name]                       Show or set the default bucket
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Every file command accepts '--bucket <name>' to override the default bucket.
Examples:
  put report.txt
  put video.mp4 1048576 --bucket media
  info 507f1f77bcf86cd799439011
  range 507f1f77bcf86cd799439011 0 99
  get 507f1f77bcf86cd799439011 downloads/report.txt"""

CAT_PREVIEW_LIMIT_BYTES = 64 * 1024
