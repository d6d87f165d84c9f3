from typing import Dict, Iterable, List, Optional

from context import ForumContext
from query_client import asc, eq, in_
from schemas.shared import CategorySummary


async def list_categories(ctx: ForumContext) -> List[dict]:
    return await ctx.client.select("categories", ["id", "name", "description"], order=[asc("name")])


async def get_category(ctx: ForumContext, category_id: int) -> dict:
    return await ctx.client.select_one("categories", filters=[eq("id", category_id)])


async def get_category_by_name(ctx: ForumContext, name: str) -> Optional[dict]:
    return await ctx.client.maybe_one("categories", filters=[eq("name", name)])


async def get_categories_by_ids(ctx: ForumContext, category_ids: Iterable[Optional[int]]) -> Dict[int, dict]:
    ids = sorted({cid for cid in category_ids if cid is not None})
    if not ids:
        return {}
    rows = await ctx.client.select("categories", ["id", "name"], [in_("id", ids)])
    return {row["id"]: row for row in rows}


def category_summary(category: Optional[dict]) -> CategorySummary:
    if not category:
        return CategorySummary()
    return CategorySummary(id=category["id"], name=category["name"])
