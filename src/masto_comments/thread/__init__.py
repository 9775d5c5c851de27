from masto_comments.thread.forest import ForestNode, ThreadForest
from masto_comments.thread.gather import gather_comments, remove_empty_values
from masto_comments.thread.prune import reestablish_prunings

__all__ = [
    "ForestNode",
    "ThreadForest",
    "gather_comments",
    "reestablish_prunings",
    "remove_empty_values",
]
