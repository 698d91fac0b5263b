"""Обработчики модерации"""
import logging

from aiogram import Router, F
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from bot.handlers.auction import build_auction_text
from bot.keyboards.moderation import get_moderation_keyboard
from config import settings
from database.models.user import User
from exceptions import AuctionError
from services.lifecycle import AuctionLifecycle, AuctionView
from services.user import describe_user

logger = logging.getLogger(__name__)

router = Router()


class RejectReasonStates(StatesGroup):
    """FSM для ввода причины отклонения"""
    waiting_reason = State()


async def get_moderator(telegram_id: int, session: AsyncSession):
    """Найти пользователя-модератора (или админа из .env)"""
    result = await session.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    user = result.scalar_one_or_none()

    # Проверяем, является ли админом из .env
    if telegram_id in settings.admin_ids_list:
        return user, True

    return user, bool(user and user.is_moderator)


async def is_admin_or_moderator(telegram_id: int, session: AsyncSession) -> bool:
    """Проверить, является ли пользователь админом или модератором"""
    _, allowed = await get_moderator(telegram_id, session)
    return allowed


async def _moderation_card(session: AsyncSession, view: AuctionView) -> str:
    """Текст карточки лота для модератора"""
    seller = await describe_user(session, view.seller_id)
    text = await build_auction_text(session, view)
    return f"{text}\nДлительность: {view.duration_days} дн.\n👤 Продавец: {seller}"


@router.message(Command("pending"))
async def cmd_pending(message: Message, session: AsyncSession, lifecycle: AuctionLifecycle):
    """Показать аукционы на модерации"""
    if not await is_admin_or_moderator(message.from_user.id, session):
        await message.answer("У вас нет прав для модерации")
        return

    pending = await lifecycle.list_pending(session)
    if not pending:
        await message.answer("✅ Нет лотов на модерации")
        return

    for view in pending:
        await message.answer(
            await _moderation_card(session, view),
            reply_markup=get_moderation_keyboard(view.id)
        )


@router.callback_query(F.data.startswith("moderation:"))
async def handle_moderation(
    callback: CallbackQuery,
    session: AsyncSession,
    state: FSMContext,
    lifecycle: AuctionLifecycle
):
    """Обработка действий модерации (approve/reject)"""
    moderator, allowed = await get_moderator(callback.from_user.id, session)
    if not allowed:
        await callback.answer("У вас нет прав для модерации", show_alert=True)
        return

    parts = callback.data.split(":")
    action = parts[1]
    auction_id = int(parts[2])

    if action == "approve":
        try:
            auction = await lifecycle.approve(
                session,
                auction_id,
                moderator_id=moderator.id if moderator else None
            )
        except AuctionError as e:
            await callback.answer(f"Ошибка: {e.message}", show_alert=True)
            return

        try:
            await callback.message.edit_reply_markup(reply_markup=None)
        except Exception as e:
            logger.debug(f"Не удалось убрать кнопки модерации лота {auction_id}: {e!r}")

        await callback.answer(
            f"Лот #{auction_id} одобрен, торги идут {auction.duration_days} дн. ✅",
            show_alert=True
        )

    elif action == "reject":
        # Запоминаем лот и просим причину
        await state.update_data(auction_id=auction_id)
        await state.set_state(RejectReasonStates.waiting_reason)
        await callback.message.answer(
            f"❌ Введите причину отклонения для лота #{auction_id}:"
        )
        await callback.answer()


@router.message(RejectReasonStates.waiting_reason)
async def process_reject_reason(
    message: Message,
    session: AsyncSession,
    state: FSMContext,
    lifecycle: AuctionLifecycle
):
    """Обработка ввода причины отклонения"""
    data = await state.get_data()
    auction_id = data.get("auction_id")

    reason = (message.text or "").strip()
    if not reason:
        await message.answer("Пожалуйста, введите не пустую причину отклонения.")
        return

    moderator, _ = await get_moderator(message.from_user.id, session)
    try:
        await lifecycle.reject(
            session,
            auction_id,
            reason,
            moderator_id=moderator.id if moderator else None
        )
        await message.answer(f"❌ Лот #{auction_id} отклонён.")
    except AuctionError as e:
        await message.answer(f"Ошибка при отклонении лота: {e.message}")

    await state.clear()
