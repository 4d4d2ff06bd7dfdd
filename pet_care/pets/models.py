"""宠物档案数据模型（日程只用到名字）。"""
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class Pet(BaseModel):
    """宠物档案（基础）。"""
    id: str = Field(..., description="宠物唯一 ID")
    name: str = Field(..., description="宠物名字")
    species: str = Field(default="dog", description="物种，如 dog / cat / exotic")
    breed: Optional[str] = Field(None, description="品种")
    birth_date: Optional[date] = Field(None, description="生日")
    weight_kg: Optional[float] = Field(None, description="体重 kg")
    owner_id: Optional[str] = Field(None, description="主人用户 ID")
    created_at: Optional[str] = Field(None, description="创建时间 ISO")
    updated_at: Optional[str] = Field(None, description="更新时间 ISO")
