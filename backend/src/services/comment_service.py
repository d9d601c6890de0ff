"""Blog comment threads: tree building, incremental patching and storage."""

import logging
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from ulid import ULID

from models.comment import Comment, CommentNode, CommentStatus
from models.user import Identity
from utils.constants import MAX_COMMENT_REPLY_DEPTH
from utils.dynamodb_utils import (
    PersistenceError,
    item_to_model,
    model_to_item,
    parse_from_dynamodb,
    parse_items_from_dynamodb,
    query_all,
)

logger = logging.getLogger(__name__)


def _make_node(comment: Comment, liked_ids: set[str]) -> CommentNode:
    return CommentNode(comment=comment, user_liked=comment.comment_id in liked_ids)


def _annotate_depth(node: CommentNode, depth: int) -> None:
    node.depth = depth
    node.can_reply = depth < MAX_COMMENT_REPLY_DEPTH
    for child in node.replies:
        _annotate_depth(child, depth + 1)


def build_comment_tree(
    comments: Iterable[Comment], liked_ids: Iterable[str] | None = None
) -> list[CommentNode]:
    """Arrange a flat list of comments into reply trees.

    The first pass indexes every comment, the second attaches each one to its
    parent (or to the root list). A comment whose parent is not in the list
    is dropped along with its own replies. Roots are stably sorted with
    pinned comments first; replies keep input order.

    The input comments are never modified and calling this twice on the same
    input yields equal trees.

    Args:
        comments: Comments of one thread, typically oldest first
        liked_ids: IDs of comments the viewer has liked

    Returns:
        Root nodes, each annotated with depth, can_reply and user_liked
    """
    liked = set(liked_ids or ())
    ordered = list(comments)
    nodes: dict[str, CommentNode] = {}
    for comment in ordered:
        nodes[comment.comment_id] = _make_node(comment, liked)

    roots: list[CommentNode] = []
    for comment in ordered:
        node = nodes[comment.comment_id]
        if comment.parent_id:
            parent = nodes.get(comment.parent_id)
            if parent is not None and parent is not node:
                parent.replies.append(node)
        else:
            roots.append(node)

    roots.sort(key=lambda n: not n.comment.is_pinned)
    for root in roots:
        _annotate_depth(root, 0)
    return roots


class CommentTree:
    """A built comment tree that can be patched after single writes.

    Patching keeps the tree equal to what ``build_comment_tree`` would
    produce from the updated comment list, so a mutation does not require
    reloading the whole thread.
    """

    def __init__(self, roots: list[CommentNode] | None = None):
        self.roots: list[CommentNode] = []
        self._nodes: dict[str, CommentNode] = {}
        self._parents: dict[str, CommentNode | None] = {}
        # Position in the source list; root sorting falls back to it
        self._order: dict[str, int] = {}
        self._next_order = 0
        for root in roots or []:
            self.roots.append(root)
            self._index(root, None)

    @classmethod
    def build(
        cls, comments: Iterable[Comment], liked_ids: Iterable[str] | None = None
    ) -> "CommentTree":
        ordered = list(comments)
        tree = cls(build_comment_tree(ordered, liked_ids))
        for position, comment in enumerate(ordered):
            if comment.comment_id in tree._order:
                tree._order[comment.comment_id] = position
        tree._next_order = len(ordered)
        return tree

    def _index(self, node: CommentNode, parent: CommentNode | None) -> None:
        self._nodes[node.comment_id] = node
        self._parents[node.comment_id] = parent
        if node.comment_id not in self._order:
            self._order[node.comment_id] = self._next_order
            self._next_order += 1
        for child in node.replies:
            self._index(child, node)

    def __contains__(self, comment_id: str) -> bool:
        return comment_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[CommentNode]:
        """Depth-first, in display order."""
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.replies))

    def find(self, comment_id: str) -> CommentNode | None:
        return self._nodes.get(comment_id)

    def depth_of(self, comment_id: str) -> int | None:
        node = self._nodes.get(comment_id)
        return node.depth if node else None

    def _sort_roots(self) -> None:
        self.roots.sort(
            key=lambda n: (not n.comment.is_pinned, self._order[n.comment_id])
        )

    def insert(self, comment: Comment, user_liked: bool = False) -> CommentNode | None:
        """Add a new comment. Returns None if its parent is not in the tree."""
        if comment.comment_id in self._nodes:
            return self.update(comment)

        node = CommentNode(comment=comment, user_liked=user_liked)
        parent = None
        if comment.parent_id:
            parent = self._nodes.get(comment.parent_id)
            if parent is None:
                return None
            parent.replies.append(node)
            depth = parent.depth + 1
        else:
            self.roots.append(node)
            depth = 0

        node.depth = depth
        node.can_reply = depth < MAX_COMMENT_REPLY_DEPTH
        self._index(node, parent)
        if parent is None:
            self._sort_roots()
        return node

    def update(self, comment: Comment) -> CommentNode | None:
        """Swap in a new version of an existing comment (edit, pin, likes)."""
        node = self._nodes.get(comment.comment_id)
        if node is None:
            return None
        node.comment = comment
        if self._parents[comment.comment_id] is None:
            self._sort_roots()
        return node

    def remove(self, comment_id: str) -> bool:
        """Remove a comment and everything that replies to it."""
        node = self._nodes.get(comment_id)
        if node is None:
            return False

        parent = self._parents[comment_id]
        siblings = parent.replies if parent is not None else self.roots
        siblings[:] = [n for n in siblings if n is not node]

        stack = [node]
        while stack:
            current = stack.pop()
            self._nodes.pop(current.comment_id, None)
            self._parents.pop(current.comment_id, None)
            self._order.pop(current.comment_id, None)
            stack.extend(current.replies)
        return True

    def set_liked(self, comment_id: str, liked: bool) -> CommentNode | None:
        """Flip the viewer's like on a comment, adjusting its like count."""
        node = self._nodes.get(comment_id)
        if node is None:
            return None
        if node.user_liked != liked:
            delta = 1 if liked else -1
            likes = max(0, node.comment.likes + delta)
            node.comment = node.comment.model_copy(update={"likes": likes})
            node.user_liked = liked
        return node


class CommentService:
    """Service for blog comments and likes."""

    def __init__(self, table, likes_table, notifier=None):
        """Initialize the comment service.

        Args:
            table: DynamoDB table for comments (hash post_id, range comment_id)
            likes_table: DynamoDB table for likes (hash comment_id, range
                user_id, GSI UserIdIndex)
            notifier: Optional EmailService for new comment alerts
        """
        self.table = table
        self.likes_table = likes_table
        self.notifier = notifier

    # ============================================
    # Reads
    # ============================================

    def get_comment(self, post_id: str, comment_id: str) -> Comment | None:
        try:
            response = self.table.get_item(
                Key={"post_id": post_id, "comment_id": comment_id}
            )
        except ClientError as e:
            raise PersistenceError(f"Failed to get comment: {e}")
        item = response.get("Item")
        return item_to_model(item, Comment) if item else None

    def list_comments(
        self, post_id: str, status: CommentStatus | None = CommentStatus.APPROVED
    ) -> list[Comment]:
        """Comments on a post, oldest first."""
        try:
            items = query_all(
                self.table, KeyConditionExpression=Key("post_id").eq(post_id)
            )
        except ClientError as e:
            raise PersistenceError(f"Failed to list comments: {e}")

        comments = [Comment(**item) for item in parse_items_from_dynamodb(items)]
        if status:
            comments = [c for c in comments if c.status == CommentStatus(status).value]
        comments.sort(key=lambda c: c.created_at)
        return comments

    def get_liked_ids(self, user_id: str) -> set[str]:
        try:
            items = query_all(
                self.likes_table,
                IndexName="UserIdIndex",
                KeyConditionExpression=Key("user_id").eq(user_id),
            )
        except ClientError as e:
            logger.warning("Could not load likes for user %s: %s", user_id, e)
            return set()
        return {item["comment_id"] for item in items}

    def list_thread(self, post_id: str, viewer_id: str | None = None) -> CommentTree:
        """Approved comments of a post as a tree, annotated for the viewer."""
        comments = self.list_comments(post_id)
        liked = self.get_liked_ids(viewer_id) if viewer_id else set()
        return CommentTree.build(comments, liked)

    # ============================================
    # Author actions
    # ============================================

    def post_comment(
        self,
        identity: Identity,
        post_id: str,
        content: str,
        parent_id: str | None = None,
        tree: CommentTree | None = None,
    ) -> Comment:
        """Publish a comment or reply (comments are approved on posting).

        Raises:
            ValueError: If the content is empty, the parent does not exist,
                or the parent is already at the maximum reply depth
        """
        content = (content or "").strip()
        if not content:
            raise ValueError("Comment cannot be empty")

        if parent_id:
            depth = self._depth_of(post_id, parent_id, tree)
            if depth is None:
                raise ValueError(f"Comment {parent_id} not found")
            if depth >= MAX_COMMENT_REPLY_DEPTH:
                raise ValueError("Replies are not allowed at this depth")

        now = datetime.now(UTC).isoformat()
        comment = Comment(
            post_id=post_id,
            comment_id=str(ULID()),
            user_id=identity.user_id,
            user_name=identity.display_name or "Anonymous",
            user_email=identity.email,
            content=content,
            parent_id=parent_id,
            status=CommentStatus.APPROVED,
            created_at=now,
            updated_at=now,
            approved_at=now,
        )

        try:
            self.table.put_item(Item=model_to_item(comment))
        except ClientError as e:
            logger.error("Failed to post comment on %s: %s", post_id, e)
            raise PersistenceError(f"Failed to post comment: {e}")

        if tree is not None:
            tree.insert(comment)
        if not parent_id and self.notifier is not None:
            self.notifier.notify(self.notifier.comment_email(comment))
        return comment

    def _depth_of(
        self, post_id: str, comment_id: str, tree: CommentTree | None
    ) -> int | None:
        if tree is not None and comment_id in tree:
            return tree.depth_of(comment_id)

        depth = 0
        current = self.get_comment(post_id, comment_id)
        if current is None:
            return None
        while current.parent_id and depth <= MAX_COMMENT_REPLY_DEPTH:
            current = self.get_comment(post_id, current.parent_id)
            if current is None:
                break
            depth += 1
        return depth

    def edit_comment(
        self,
        identity: Identity,
        post_id: str,
        comment_id: str,
        content: str,
        tree: CommentTree | None = None,
    ) -> Comment | None:
        """Change the text of one's own comment.

        Returns:
            The updated comment, or None if it does not exist

        Raises:
            PermissionError: If the caller is not the author
            ValueError: If the new content is empty
        """
        content = (content or "").strip()
        if not content:
            raise ValueError("Comment cannot be empty")

        existing = self.get_comment(post_id, comment_id)
        if existing is None:
            return None
        if existing.user_id != identity.user_id:
            raise PermissionError("Only the author can edit this comment")

        try:
            response = self.table.update_item(
                Key={"post_id": post_id, "comment_id": comment_id},
                UpdateExpression="SET content = :c, is_edited = :t, updated_at = :u",
                ConditionExpression="user_id = :uid",
                ExpressionAttributeValues={
                    ":c": content,
                    ":t": True,
                    ":u": datetime.now(UTC).isoformat(),
                    ":uid": identity.user_id,
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise PermissionError("Only the author can edit this comment")
            raise PersistenceError(f"Failed to edit comment: {e}")

        updated = Comment(**parse_from_dynamodb(response["Attributes"]))
        if tree is not None:
            tree.update(updated)
        return updated

    def delete_comment(
        self,
        identity: Identity,
        post_id: str,
        comment_id: str,
        tree: CommentTree | None = None,
    ) -> bool:
        """Delete one's own comment. Replies to it stop being shown.

        Returns:
            False if the comment does not exist

        Raises:
            PermissionError: If the caller is not the author
        """
        try:
            self.table.delete_item(
                Key={"post_id": post_id, "comment_id": comment_id},
                ConditionExpression="attribute_exists(comment_id) AND user_id = :uid",
                ExpressionAttributeValues={":uid": identity.user_id},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                raise PersistenceError(f"Failed to delete comment: {e}")
            if self.get_comment(post_id, comment_id) is None:
                return False
            raise PermissionError("Only the author can delete this comment")

        if tree is not None:
            tree.remove(comment_id)
        return True

    def like_comment(
        self,
        identity: Identity,
        post_id: str,
        comment_id: str,
        tree: CommentTree | None = None,
    ) -> bool:
        """Record a like. Returns False if the caller already liked it."""
        try:
            self.likes_table.put_item(
                Item={
                    "comment_id": comment_id,
                    "user_id": identity.user_id,
                    "post_id": post_id,
                    "created_at": datetime.now(UTC).isoformat(),
                },
                ConditionExpression="attribute_not_exists(user_id)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise PersistenceError(f"Failed to like comment: {e}")

        self._bump_likes(post_id, comment_id, 1)
        if tree is not None:
            tree.set_liked(comment_id, True)
        return True

    def unlike_comment(
        self,
        identity: Identity,
        post_id: str,
        comment_id: str,
        tree: CommentTree | None = None,
    ) -> bool:
        """Remove a like. Returns False if the caller had not liked it."""
        try:
            self.likes_table.delete_item(
                Key={"comment_id": comment_id, "user_id": identity.user_id},
                ConditionExpression="attribute_exists(user_id)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise PersistenceError(f"Failed to unlike comment: {e}")

        self._bump_likes(post_id, comment_id, -1)
        if tree is not None:
            tree.set_liked(comment_id, False)
        return True

    def _bump_likes(self, post_id: str, comment_id: str, delta: int) -> None:
        """Keep the denormalised like counter on the comment in step."""
        condition = "attribute_exists(comment_id)"
        if delta < 0:
            condition += " AND likes > :zero"
        values = {":d": delta}
        if delta < 0:
            values[":zero"] = 0
        try:
            self.table.update_item(
                Key={"post_id": post_id, "comment_id": comment_id},
                UpdateExpression="ADD likes :d",
                ConditionExpression=condition,
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            logger.warning("Like counter for %s not updated: %s", comment_id, e)

    # ============================================
    # Moderation
    # ============================================

    def set_status(
        self, post_id: str, comment_id: str, status: CommentStatus
    ) -> Comment | None:
        """Approve or reject a comment. Returns None if it does not exist."""
        status = CommentStatus(status)
        now = datetime.now(UTC).isoformat()
        update = "SET #s = :s, updated_at = :u"
        values = {":s": status.value, ":u": now}
        if status == CommentStatus.APPROVED:
            update += ", approved_at = :u"
        return self._update(
            post_id,
            comment_id,
            UpdateExpression=update,
            ExpressionAttributeNames={"#s": "status"},
            ExpressionAttributeValues=values,
        )

    def toggle_pin(self, post_id: str, comment_id: str) -> Comment | None:
        existing = self.get_comment(post_id, comment_id)
        if existing is None:
            return None
        return self._update(
            post_id,
            comment_id,
            UpdateExpression="SET is_pinned = :p, updated_at = :u",
            ExpressionAttributeValues={
                ":p": not existing.is_pinned,
                ":u": datetime.now(UTC).isoformat(),
            },
        )

    def _update(self, post_id: str, comment_id: str, **kwargs) -> Comment | None:
        try:
            response = self.table.update_item(
                Key={"post_id": post_id, "comment_id": comment_id},
                ConditionExpression="attribute_exists(comment_id)",
                ReturnValues="ALL_NEW",
                **kwargs,
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return None
            raise PersistenceError(f"Failed to update comment: {e}")
        return Comment(**parse_from_dynamodb(response["Attributes"]))
