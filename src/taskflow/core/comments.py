# src/taskflow/core/comments.py

from __future__ import annotations

import logging
from dataclasses import replace

from .errors import NotFound
from .models import Comment, Reaction, Task, new_id, now_ms
from .sync import SyncController

logger = logging.getLogger(__name__)


class CommentService:
    """
    Append-only comments and increment-only reactions.

    Each write reads the task's current comment list, builds a new one, and
    pushes it back through `SyncController.update`.
    """

    def __init__(self, controller: SyncController, *, author: str = "You") -> None:
        self._controller = controller
        self._author = author

    def add_comment(self, task_id: str, text: str) -> Comment:
        task = self._controller.manager.get(task_id)
        comment = Comment(id=new_id(), author=self._author, text=text, created_at=now_ms())
        self._controller.update(task_id, {"comments": [*task.comments, comment]})
        logger.debug("Comment %s added to task %s", comment.id, task_id)
        return comment

    def add_reaction(self, task_id: str, comment_id: str, emoji: str) -> Reaction:
        """
        Bump `emoji` on a comment. There is no un-react: repeated calls keep
        incrementing.
        """
        task = self._controller.manager.get(task_id)
        target = _find_comment(task, comment_id)

        existing = target.reactions.get(emoji) or Reaction(emoji=emoji)
        bumped = Reaction(emoji=emoji, count=existing.count + 1, user_reacted=True)
        updated = replace(target, reactions={**target.reactions, emoji: bumped})

        comments = [updated if c.id == comment_id else c for c in task.comments]
        self._controller.update(task_id, {"comments": comments})
        return bumped


def _find_comment(task: Task, comment_id: str) -> Comment:
    for comment in task.comments:
        if comment.id == comment_id:
            return comment
    raise NotFound("comment", comment_id)
