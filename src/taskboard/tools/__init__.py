"""Agent tools over the ticket board."""

from taskboard.tools.board_tool import (
    BOARD_ACTIONS,
    BoardTool,
    ToolInputError,
    format_age,
    format_board_status,
    format_ticket_summary,
    read_number_param,
    read_string_param,
)

__all__ = [
    "BOARD_ACTIONS",
    "BoardTool",
    "ToolInputError",
    "format_age",
    "format_board_status",
    "format_ticket_summary",
    "read_number_param",
    "read_string_param",
]
