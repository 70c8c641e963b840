"""
Storage Module
存储模块 - 菜谱仓库与文件存储
"""
from .recipe_store import RecipeFileStore, sanitize_file_name
from .recipe_repository import RecipeRepository

__all__ = [
    "RecipeFileStore",
    "RecipeRepository",
    "sanitize_file_name",
]
