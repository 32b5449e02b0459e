from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status

from .. import repositories
from ..db import BlockingConnectionPool
from ..logger import get_logger
from ..repositories import TodoNotFoundError
from ..schemas import TodoCreate, TodoOut

logger = get_logger(__name__)

router = APIRouter(tags=["todos"])

# ids are SERIAL (int4) in the database
MAX_TODO_ID = 2**31 - 1


def get_pool(request: Request) -> BlockingConnectionPool:
    """
    Dependency returning the connection pool opened by the application lifespan.
    """
    return request.app.state.pool


def get_timeout(request: Request) -> float:
    """
    Dependency returning the per-call database timeout in seconds.
    """
    return request.app.state.settings.db_timeout_seconds


# PUBLIC_INTERFACE
@router.post(
    "/todo",
    response_model=TodoOut,
    status_code=status.HTTP_200_OK,
    summary="Create Todo",
    description="Create a new Todo item and return the stored resource.",
    responses={
        200: {"description": "Todo created successfully"},
        422: {"description": "Validation error"},
        500: {"description": "Database error"},
    },
)
def create_todo(
    payload: TodoCreate,
    pool: BlockingConnectionPool = Depends(get_pool),
    timeout: float = Depends(get_timeout),
) -> TodoOut:
    """
    Create a new Todo.
    """
    created = repositories.create_todo(pool, payload.title, payload.completed, timeout=timeout)
    logger.info(f"Created todo #{created['id']}")
    return TodoOut(**created)


# PUBLIC_INTERFACE
@router.get(
    "/todos",
    response_model=List[TodoOut],
    summary="List Todos",
    description="List every Todo item, newest first.",
    responses={
        200: {"description": "List retrieved successfully"},
        500: {"description": "Database error"},
    },
)
def list_todos(
    pool: BlockingConnectionPool = Depends(get_pool),
    timeout: float = Depends(get_timeout),
) -> List[TodoOut]:
    """
    List all todos ordered by creation time, descending.
    """
    items = repositories.get_all_todos(pool, timeout=timeout)
    return [TodoOut(**it) for it in items]


# PUBLIC_INTERFACE
@router.get(
    "/todo/{todo_id}",
    response_model=TodoOut,
    summary="Get Todo",
    description="Get a single Todo item by ID.",
    responses={
        200: {"description": "Todo found"},
        422: {"description": "Id is not a positive 32-bit integer"},
        404: {"description": "Todo not found"},
        500: {"description": "Database error"},
    },
)
def get_todo(
    todo_id: int = Path(..., ge=1, le=MAX_TODO_ID, description="Identifier of the todo item"),
    pool: BlockingConnectionPool = Depends(get_pool),
    timeout: float = Depends(get_timeout),
) -> TodoOut:
    """
    Retrieve a single Todo item by its ID.
    """
    try:
        item = repositories.get_todo_by_id(pool, todo_id, timeout=timeout)
    except TodoNotFoundError:
        logger.warning(f"Todo #{todo_id} not found")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")
    return TodoOut(**item)
