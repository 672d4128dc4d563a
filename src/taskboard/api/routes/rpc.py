"""Board RPC endpoints.

Every method is a POST to ``/rpc/board.<name>`` whose body carries the
caller's ``sessionKey`` along with the method parameters. The session key
selects the agent workspace the call operates on.
"""

import logging

from fastapi import APIRouter

from taskboard.api.dependencies import BoardContext, ConfigDep
from taskboard.api.models import (
    APIResponse,
    BoardCommentParams,
    BoardCreateParams,
    BoardInitParams,
    BoardInitResponse,
    BoardListParams,
    BoardMethodParams,
    BoardMoveParams,
    BoardStatusResponse,
    BoardUpdateParams,
    CommentResponse,
    DeleteResponse,
    TicketDetailResponse,
    TicketListResponse,
    TicketParams,
    TicketResponse,
    summary_to_response,
    ticket_to_brief,
    ticket_to_detail,
    ticket_to_list_item,
)
from taskboard.board import (
    BoardNotInitializedError,
    InvalidFieldError,
    TicketCreate,
    TicketNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rpc", tags=["board"])


@router.post("/board.init", response_model=APIResponse[BoardInitResponse])
def board_init(params: BoardInitParams, config: ConfigDep) -> APIResponse[BoardInitResponse]:
    """Initialize the caller's board; an existing board is returned unchanged."""
    ctx = BoardContext(config, params.session_key)
    try:
        board = ctx.board.init(
            project_id=params.project_id or ctx.agent_id,
            project_name=params.project_name or ctx.agent_id,
            schema=params.board_schema or config.default_schema,
        )
    except ValueError as e:
        raise InvalidFieldError(str(e)) from e
    return APIResponse(
        data=BoardInitResponse(
            project_id=board.project_id,
            project_name=board.project_name,
            ticket_prefix=board.settings.ticket_prefix,
            board_schema=board.schema,
        )
    )


@router.post("/board.status", response_model=APIResponse[BoardStatusResponse])
def board_status(
    params: BoardMethodParams, config: ConfigDep
) -> APIResponse[BoardStatusResponse]:
    """Get column counts and board health."""
    summary = BoardContext(config, params.session_key).board.get_summary()
    if summary is None:
        raise BoardNotInitializedError()
    return APIResponse(data=summary_to_response(summary))


@router.post("/board.list", response_model=APIResponse[TicketListResponse])
def board_list(params: BoardListParams, config: ConfigDep) -> APIResponse[TicketListResponse]:
    """List tickets, optionally filtered by column and type."""
    board = BoardContext(config, params.session_key).board
    if board.load_board() is None:
        raise BoardNotInitializedError()
    tickets = (
        board.get_tickets_by_status(params.column) if params.column else board.list_tickets()
    )
    if params.ticket_type:
        tickets = [t for t in tickets if t.type == params.ticket_type]
    return APIResponse(data=TicketListResponse(tickets=[ticket_to_list_item(t) for t in tickets]))


@router.post("/board.view", response_model=APIResponse[TicketDetailResponse])
def board_view(params: TicketParams, config: ConfigDep) -> APIResponse[TicketDetailResponse]:
    """Get a ticket's full record."""
    ticket = BoardContext(config, params.session_key).board.get_ticket(params.ticket_id)
    if ticket is None:
        raise TicketNotFoundError(params.ticket_id)
    return APIResponse(data=ticket_to_detail(ticket))


@router.post("/board.create", response_model=APIResponse[TicketResponse])
def board_create(params: BoardCreateParams, config: ConfigDep) -> APIResponse[TicketResponse]:
    """Create a ticket in the first column."""
    board = BoardContext(config, params.session_key).board
    ticket = board.create_ticket(
        TicketCreate(
            title=params.title,
            type=params.ticket_type,
            intent=params.intent,
            acceptance_signal=params.acceptance_signal,
            priority=params.priority,
            parent_id=params.parent_id,
        )
    )
    return APIResponse(data=TicketResponse(ticket=ticket_to_brief(ticket, with_type=True)))


@router.post("/board.update", response_model=APIResponse[TicketResponse])
def board_update(params: BoardUpdateParams, config: ConfigDep) -> APIResponse[TicketResponse]:
    """Update ticket fields, appending ``comment`` first when given."""
    ctx = BoardContext(config, params.session_key)

    comment = params.comment.strip() if params.comment else ""
    if comment:
        ticket = ctx.board.add_comment(params.ticket_id, ctx.agent_id, comment)

    patch = {
        "title": params.title,
        "type": params.ticket_type,
        "intent": params.intent,
        "acceptanceSignal": params.acceptance_signal,
        "priority": params.priority,
    }
    if any(value is not None for value in patch.values()):
        ticket = ctx.board.update_ticket(params.ticket_id, patch)
    elif not comment:
        ticket = ctx.board.get_ticket(params.ticket_id)
        if ticket is None:
            raise TicketNotFoundError(params.ticket_id)

    return APIResponse(data=TicketResponse(ticket=ticket_to_brief(ticket)))


@router.post("/board.move", response_model=APIResponse[TicketResponse])
def board_move(params: BoardMoveParams, config: ConfigDep) -> APIResponse[TicketResponse]:
    """Move a ticket to another column, enforcing WIP limits."""
    ticket = BoardContext(config, params.session_key).board.move_ticket(
        params.ticket_id, params.to_status, params.note
    )
    return APIResponse(data=TicketResponse(ticket=ticket_to_brief(ticket)))


@router.post("/board.comment", response_model=APIResponse[CommentResponse])
def board_comment(params: BoardCommentParams, config: ConfigDep) -> APIResponse[CommentResponse]:
    """Append a comment authored by the calling agent."""
    ctx = BoardContext(config, params.session_key)
    ticket = ctx.board.add_comment(params.ticket_id, ctx.agent_id, params.comment.strip())
    return APIResponse(
        data=CommentResponse(ticket_id=ticket.id, comment_count=len(ticket.comments))
    )


@router.post("/board.delete", response_model=APIResponse[DeleteResponse])
def board_delete(params: TicketParams, config: ConfigDep) -> APIResponse[DeleteResponse]:
    """Delete a ticket."""
    if not BoardContext(config, params.session_key).board.delete_ticket(params.ticket_id):
        raise TicketNotFoundError(params.ticket_id)
    logger.debug("Deleted %s via rpc", params.ticket_id)
    return APIResponse(data=DeleteResponse(ticket_id=params.ticket_id, deleted=True))
