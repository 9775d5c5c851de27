from masto_comments.content.sanitizer import clean_content

__all__ = ["clean_content"]
