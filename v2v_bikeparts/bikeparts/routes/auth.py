from __future__ import annotations
from fastapi import APIRouter, Depends

from ..deps import BuyerContext, get_context

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
async def me(ctx: BuyerContext = Depends(get_context)):
    return ctx.user.model_dump()


@router.post("/logout")
async def logout(ctx: BuyerContext = Depends(get_context)):
    await ctx.session.sign_out()
    return {"ok": True}
