from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .db import Board, Subtask, Task, new_uuid
from .errors import NotFound

T = TypeVar("T", Task, Subtask)

# Columns that may not be cleared by an update; a null for these means "leave as is".
_REQUIRED_FIELDS = {"name", "title", "status", "is_completed"}


def ordered(children: Iterable[T], ids: Sequence[str]) -> list[T]:
    """Sort children by their position in the parent's id list.

    Rows missing from the list go last.
    """
    position = {child_id: i for i, child_id in enumerate(ids)}
    return sorted(children, key=lambda c: (position.get(c.id, len(position)), c.id))


class Storage:
    """Board -> task -> subtask graph on top of one ORM session.

    Parents keep ordered id lists of their children. Every mutating call
    touches the child row and the parent list inside the same transaction and
    commits once, so a failure part way leaves neither write behind. All reads
    are scoped to the requesting user through the owning board.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _apply(self, obj: Any, changes: dict[str, Any]) -> None:
        for field, value in changes.items():
            if value is None and field in _REQUIRED_FIELDS:
                continue
            if isinstance(value, str) and field != "description":
                value = value.strip()
            setattr(obj, field, value)

    def _commit_update(self, what: str) -> None:
        try:
            self.session.commit()
        except StaleDataError:
            # Row deleted by a concurrent request between read and write.
            self.session.rollback()
            raise NotFound(f"{what} not found")

    # === Board operations ===

    def create_board(self, owner: str, name: str) -> Board:
        board = Board(id=new_uuid(), name=name.strip(), user_id=owner, task_ids=[])
        self.session.add(board)
        self.session.commit()
        return board

    def list_boards_for_user(self, user_id: str) -> list[Board]:
        stmt = select(Board).where(Board.user_id == user_id).order_by(Board.created_at, Board.id)
        return list(self.session.scalars(stmt))

    def find_board(self, board_id: str, user_id: str) -> Optional[Board]:
        stmt = select(Board).where(Board.id == board_id, Board.user_id == user_id)
        return self.session.scalar(stmt)

    def get_board(self, board_id: str, user_id: str) -> Board:
        board = self.find_board(board_id, user_id)
        if board is None:
            raise NotFound("Board not found")
        return board

    def board_detail(self, board_id: str, user_id: str) -> tuple[Board, list[tuple[Task, list[Subtask]]]]:
        """Return the board with its tasks and each task's subtasks, in list order."""
        board = self.get_board(board_id, user_id)
        tasks = self._tasks_of(board)
        by_task: dict[str, list[Subtask]] = {t.id: [] for t in tasks}
        if by_task:
            stmt = select(Subtask).where(Subtask.task_id.in_(list(by_task)))
            for subtask in self.session.scalars(stmt):
                by_task[subtask.task_id].append(subtask)
        return board, [(t, ordered(by_task[t.id], t.subtask_ids)) for t in tasks]

    def update_board(self, board_id: str, user_id: str, changes: dict[str, Any]) -> Board:
        board = self.get_board(board_id, user_id)
        self._apply(board, changes)
        self._commit_update("Board")
        return board

    def delete_board(self, board_id: str, user_id: str) -> None:
        board = self.get_board(board_id, user_id)
        task_ids = set(self.session.scalars(select(Task.id).where(Task.board_id == board.id)))
        task_ids.update(board.task_ids)
        if task_ids:
            self.session.execute(delete(Subtask).where(Subtask.task_id.in_(list(task_ids))))
        self.session.execute(delete(Task).where(Task.board_id == board.id))
        self.session.delete(board)
        self.session.commit()

    # === Task operations ===

    def _tasks_of(self, board: Board) -> list[Task]:
        tasks = self.session.scalars(select(Task).where(Task.board_id == board.id))
        return ordered(tasks, board.task_ids)

    def _owned_task(self, task_id: str, user_id: str) -> Optional[Task]:
        stmt = (
            select(Task)
            .join(Board, Task.board_id == Board.id)
            .where(Task.id == task_id, Board.user_id == user_id)
        )
        return self.session.scalar(stmt)

    def get_task(self, task_id: str, user_id: str) -> Task:
        task = self._owned_task(task_id, user_id)
        if task is None:
            raise NotFound("Task not found")
        return task

    def create_task(
        self,
        user_id: str,
        board_id: str,
        title: str,
        description: Optional[str],
        status: str,
    ) -> Task:
        board = self.get_board(board_id, user_id)
        task = Task(
            id=new_uuid(),
            title=title.strip(),
            description=description,
            status=status.strip(),
            board_id=board.id,
            subtask_ids=[],
        )
        self.session.add(task)
        board.task_ids.append(task.id)
        self.session.commit()
        return task

    def list_tasks(self, board_id: str, user_id: str) -> list[Task]:
        board = self.find_board(board_id, user_id)
        if board is None:
            return []
        return self._tasks_of(board)

    def update_task(self, task_id: str, user_id: str, changes: dict[str, Any]) -> Task:
        task = self.get_task(task_id, user_id)
        self._apply(task, changes)
        self._commit_update("Task")
        return task

    def delete_task(self, task_id: str, user_id: str) -> Task:
        task = self.get_task(task_id, user_id)
        board = self.session.get(Board, task.board_id)
        if board is not None:
            board.task_ids = [i for i in board.task_ids if i != task.id]
        self.session.execute(delete(Subtask).where(Subtask.task_id == task.id))
        self.session.delete(task)
        self.session.commit()
        return task

    # === Subtask operations ===

    def get_subtask(self, subtask_id: str, user_id: str) -> tuple[Subtask, Task]:
        subtask = self.session.get(Subtask, subtask_id)
        if subtask is None:
            raise NotFound("Subtask not found")
        task = self._owned_task(subtask.task_id, user_id)
        if task is None:
            if self.session.get(Task, subtask.task_id) is None:
                raise NotFound("Task not found")
            raise NotFound("Subtask not found")
        return subtask, task

    def create_subtask(self, user_id: str, task_id: str, title: str, is_completed: bool) -> Subtask:
        task = self.get_task(task_id, user_id)
        subtask = Subtask(id=new_uuid(), title=title.strip(), is_completed=is_completed, task_id=task.id)
        self.session.add(subtask)
        task.subtask_ids.append(subtask.id)
        self.session.commit()
        return subtask

    def list_subtasks(self, task_id: str, user_id: str) -> list[Subtask]:
        task = self._owned_task(task_id, user_id)
        if task is None:
            return []
        subtasks = self.session.scalars(select(Subtask).where(Subtask.task_id == task.id))
        return ordered(subtasks, task.subtask_ids)

    def update_subtask(self, subtask_id: str, user_id: str, changes: dict[str, Any]) -> Subtask:
        subtask, _ = self.get_subtask(subtask_id, user_id)
        self._apply(subtask, changes)
        self._commit_update("Subtask")
        return subtask

    def delete_subtask(self, subtask_id: str, user_id: str) -> None:
        subtask, task = self.get_subtask(subtask_id, user_id)
        task.subtask_ids = [i for i in task.subtask_ids if i != subtask.id]
        self.session.delete(subtask)
        self.session.commit()
