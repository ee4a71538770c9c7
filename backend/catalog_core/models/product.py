"""
产品模型 - 由存储协作方拥有，核心模块只读
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Product(BaseModel):
    """产品（编号唯一且对用户可见）"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(..., description="产品编号")
    description: str = Field("", description="产品描述")
    category: str | None = Field(None, description="分类")
    image: str | None = Field(None, description="可直接嵌入的图片引用（URL/路径/data URI）")
    created_at: datetime | None = None


class ProductsPage(BaseModel):
    """分页查询结果"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: list[Product] = Field(default_factory=list)
    total_count: int = 0
    current_page: int = 1
    total_pages: int = 1
    page_size: int = 15
