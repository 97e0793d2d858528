import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from . import __version__
from .auth import Authenticator
from .config import Settings, get_settings
from .db import Board, Database, Subtask, Task
from .deps import (
    get_authenticator,
    get_bearer_token,
    get_current_user,
    get_session,
    get_storage,
)
from .errors import register_error_handlers
from .schemas import (
    BoardEnvelope,
    BoardIn,
    BoardOut,
    BoardPatch,
    BoardsEnvelope,
    BoardView,
    Health,
    LoginIn,
    Message,
    RefreshIn,
    RegisterIn,
    RegisterOut,
    SubtaskEnvelope,
    SubtaskIn,
    SubtaskOut,
    SubtaskPatch,
    SubtasksEnvelope,
    TaskEnvelope,
    TaskIn,
    TaskOut,
    TaskPatch,
    TasksEnvelope,
    TaskView,
    TokenPair,
)
from .storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter()


# === Helpers ===


def board_out(board: Board) -> BoardOut:
    return BoardOut(
        id=board.id,
        name=board.name,
        userId=board.user_id,
        tasks=list(board.task_ids),
        createdAt=board.created_at,
        updatedAt=board.updated_at,
    )


def task_out(task: Task) -> TaskOut:
    return TaskOut(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        boardId=task.board_id,
        subtasks=list(task.subtask_ids),
        createdAt=task.created_at,
        updatedAt=task.updated_at,
    )


def subtask_out(subtask: Subtask) -> SubtaskOut:
    return SubtaskOut(
        id=subtask.id,
        title=subtask.title,
        isCompleted=subtask.is_completed,
        taskId=subtask.task_id,
        createdAt=subtask.created_at,
        updatedAt=subtask.updated_at,
    )


def board_view(board: Board, tasks: list[tuple[Task, list[Subtask]]]) -> BoardView:
    return BoardView(
        id=board.id,
        name=board.name,
        userId=board.user_id,
        tasks=[
            TaskView(
                id=task.id,
                title=task.title,
                description=task.description,
                status=task.status,
                boardId=task.board_id,
                subtasks=[subtask_out(s) for s in subtasks],
                createdAt=task.created_at,
                updatedAt=task.updated_at,
            )
            for task, subtasks in tasks
        ],
        createdAt=board.created_at,
        updatedAt=board.updated_at,
    )


# === Health & metadata ===


@router.get("/", response_model=Message)
def root():
    return Message(message="server is running")


@router.get("/health", response_model=Health)
def health():
    return Health()


# === User endpoints ===


@router.post("/user/register", response_model=RegisterOut, tags=["User"])
def register(
    payload: RegisterIn,
    session: Session = Depends(get_session),
    authenticator: Authenticator = Depends(get_authenticator),
):
    user = authenticator.register(session, payload.name, payload.email, payload.password)
    return RegisterOut(message="New user registered successfully", userId=user.id)


@router.post("/user/login", response_model=TokenPair, tags=["User"])
def login(
    payload: LoginIn,
    session: Session = Depends(get_session),
    authenticator: Authenticator = Depends(get_authenticator),
):
    token, refresh_token = authenticator.login(session, payload.email, payload.password)
    return TokenPair(message="login successful", token=token, refreshToken=refresh_token)


@router.post("/user/refresh", response_model=TokenPair, tags=["User"])
def refresh(
    payload: RefreshIn,
    session: Session = Depends(get_session),
    authenticator: Authenticator = Depends(get_authenticator),
):
    token, refresh_token = authenticator.refresh(session, payload.refreshToken)
    return TokenPair(message="token refreshed", token=token, refreshToken=refresh_token)


@router.get("/user/logout", response_model=Message, tags=["User"])
def logout(
    token: Optional[str] = Depends(get_bearer_token),
    session: Session = Depends(get_session),
    authenticator: Authenticator = Depends(get_authenticator),
):
    authenticator.logout(session, token)
    return Message(message="logout successful")


# === Board endpoints ===


@router.post("/board", response_model=BoardEnvelope, tags=["Board"])
def create_board(
    payload: BoardIn,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    board = storage.create_board(user, payload.name)
    return BoardEnvelope(message="Board created successfully", board=board_out(board))


@router.get("/board", response_model=BoardsEnvelope, tags=["Board"])
def list_boards(user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    boards = [board_out(b) for b in storage.list_boards_for_user(user)]
    return BoardsEnvelope(message="Boards fetched successfully", boards=boards)


@router.get("/board/{board_id}", response_model=BoardView, tags=["Board"])
def get_board(board_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    board, tasks = storage.board_detail(board_id, user)
    return board_view(board, tasks)


@router.patch("/board/{board_id}", response_model=BoardEnvelope, tags=["Board"])
def update_board(
    board_id: str,
    payload: BoardPatch,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    board = storage.update_board(board_id, user, payload.model_dump(exclude_unset=True))
    return BoardEnvelope(message="Board updated successfully", board=board_out(board))


@router.delete("/board/{board_id}", response_model=Message, tags=["Board"])
def delete_board(board_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    storage.delete_board(board_id, user)
    return Message(message="Board and associated data deleted successfully")


# === Task endpoints ===


@router.post("/task/{board_id}", response_model=TaskEnvelope, tags=["Task"])
def create_task(
    board_id: str,
    payload: TaskIn,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    task = storage.create_task(user, board_id, payload.title, payload.description, payload.status)
    return TaskEnvelope(message="Task created successfully", task=task_out(task))


@router.get("/task/{board_id}", response_model=TasksEnvelope, tags=["Task"])
def list_tasks(board_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    tasks = [task_out(t) for t in storage.list_tasks(board_id, user)]
    return TasksEnvelope(message="Tasks fetched successfully", tasks=tasks)


@router.patch("/task/{task_id}", response_model=TaskEnvelope, tags=["Task"])
def update_task(
    task_id: str,
    payload: TaskPatch,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    task = storage.update_task(task_id, user, payload.model_dump(exclude_unset=True))
    return TaskEnvelope(message="Task updated successfully", task=task_out(task))


@router.delete("/task/{task_id}", response_model=TaskEnvelope, tags=["Task"])
def delete_task(task_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    task = storage.delete_task(task_id, user)
    return TaskEnvelope(message="Task deleted successfully", task=task_out(task))


# === Subtask endpoints ===


@router.post("/subtask/{task_id}", response_model=SubtaskEnvelope, tags=["Subtask"])
def create_subtask(
    task_id: str,
    payload: SubtaskIn,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    subtask = storage.create_subtask(user, task_id, payload.title, payload.isCompleted)
    return SubtaskEnvelope(message="Subtask created successfully", subtask=subtask_out(subtask))


@router.get("/subtask/{task_id}", response_model=SubtasksEnvelope, tags=["Subtask"])
def list_subtasks(task_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    subtasks = [subtask_out(s) for s in storage.list_subtasks(task_id, user)]
    return SubtasksEnvelope(message="Subtasks fetched successfully", subtasks=subtasks)


@router.patch("/subtask/{subtask_id}", response_model=SubtaskEnvelope, tags=["Subtask"])
def update_subtask(
    subtask_id: str,
    payload: SubtaskPatch,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    changes = payload.model_dump(exclude_unset=True)
    if "isCompleted" in changes:
        changes["is_completed"] = changes.pop("isCompleted")
    subtask = storage.update_subtask(subtask_id, user, changes)
    return SubtaskEnvelope(message="Subtask updated successfully", subtask=subtask_out(subtask))


@router.delete("/subtask/{subtask_id}", response_model=Message, tags=["Subtask"])
def delete_subtask(subtask_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    storage.delete_subtask(subtask_id, user)
    return Message(message="Subtask deleted successfully")


# === Application factory ===


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    database = Database(settings.database_url, pool_timeout=settings.database_pool_timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Taskboard API %s", __version__)
        database.init()
        try:
            yield
        finally:
            database.dispose()

    app = FastAPI(
        title="Taskboard API",
        version=__version__,
        docs_url="/api-docs",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.authenticator = Authenticator(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.include_router(router)
    return app
