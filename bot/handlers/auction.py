"""Обработчики аукционов"""
from decimal import Decimal
from html import escape

from aiogram import Router, F
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message
from sqlalchemy.ext.asyncio import AsyncSession

from bot.keyboards.auction import get_auction_keyboard
from database.models.auction import AuctionStatus
from exceptions import AuctionError, AuctionNotFoundError, BidTooLowError
from services.auction import list_bids
from services.bidding import BidAcceptor
from services.history import BID_HISTORY_STATUSES, build_bid_history
from services.lifecycle import AuctionLifecycle, AuctionView
from services.user import describe_user, get_or_create_user
from services.winner import WinnerResolver

router = Router()

STATUS_NAMES = {
    "pending": "На модерации",
    "approved": "Идут торги",
    "rejected": "Отклонен",
    "ended": "Торги завершены",
    "sold": "Продан",
    "unsold": "Не продан",
}

BID_STATUS_NAMES = {
    "active": "идут торги",
    "won": "выиграна",
    "lost": "перебита",
    "ended": "торги завершены",
}
MYBIDS_USAGE = f"Использование: /mybids [{'|'.join(BID_HISTORY_STATUSES)}]"


def _format_time_left(view: AuctionView) -> str:
    """Оставшееся время в виде 'Xч Yм'"""
    if view.time_left is None:
        return "-"
    total = max(0, int(view.time_left.total_seconds()))
    return f"{total // 3600}ч {(total % 3600) // 60}м"


async def build_auction_text(session: AsyncSession, view: AuctionView) -> str:
    """Сформировать текст карточки аукциона"""
    text_parts = [
        f"🏷 Лот #{view.id}: {escape(view.title)}",
        f"Статус: {STATUS_NAMES.get(view.status, view.status)}",
        f"Изначальная цена: {view.starting_price:,}",
        f"⚡️ Текущая цена: {view.current_price:,}",
        f"👥 Кол-во ставок: {view.total_bid_count}",
    ]
    if view.highest_bidder_id is not None:
        leader = await describe_user(session, view.highest_bidder_id)
        text_parts.append(f"🏆 Лидер: {leader}")
    if view.is_live:
        text_parts.append(f"⏳ До конца: {_format_time_left(view)}")
    if view.rejection_reason:
        text_parts.append(f"Причина отклонения: {escape(view.rejection_reason)}")
    return "\n".join(text_parts)


async def rejection_text(
    session: AsyncSession,
    lifecycle: AuctionLifecycle,
    auction_id: int,
    error: AuctionError
) -> str:
    """Текст отказа для пользователя"""
    if isinstance(error, BidTooLowError):
        view = await lifecycle.get_auction_view(session, auction_id)
        leader = await describe_user(session, view.highest_bidder_id)
        return (
            f"❌ Ставка должна быть выше {error.current_price:,}.\n"
            f"Сейчас лидирует: {leader}"
        )
    return f"❌ {error.message}"


async def _place_bid(
    message: Message,
    session: AsyncSession,
    acceptor: BidAcceptor,
    lifecycle: AuctionLifecycle,
    auction_id: int,
    amount,
    from_user
) -> None:
    """Сделать ставку от имени пользователя Telegram и ответить ему"""
    user = await get_or_create_user(
        session,
        from_user.id,
        from_user.username,
        from_user.first_name,
        from_user.last_name
    )

    try:
        bid = await acceptor.place_bid(session, auction_id, user.id, amount)
    except AuctionNotFoundError as e:
        await message.answer(f"❌ {e.message}")
        return
    except AuctionError as e:
        await message.answer(await rejection_text(session, lifecycle, auction_id, e))
        return

    await message.answer(
        f"✅ Ваша ставка {bid.amount:,} на лот #{auction_id} принята."
    )


@router.message(Command("auction"))
async def cmd_auction(
    message: Message,
    command: CommandObject,
    session: AsyncSession,
    lifecycle: AuctionLifecycle
):
    """Показать аукцион: /auction <id>"""
    if not command.args or not command.args.strip().isdigit():
        await message.answer("Использование: /auction <номер лота>")
        return

    auction_id = int(command.args.strip())
    try:
        view = await lifecycle.get_auction_view(session, auction_id)
    except AuctionNotFoundError as e:
        await message.answer(e.message)
        return

    text = await build_auction_text(session, view)
    keyboard = get_auction_keyboard(view.id) if view.is_live else None
    await message.answer(text, reply_markup=keyboard)


@router.message(Command("bid"))
async def cmd_bid(
    message: Message,
    command: CommandObject,
    session: AsyncSession,
    acceptor: BidAcceptor,
    lifecycle: AuctionLifecycle
):
    """Сделать ставку: /bid <id> <сумма>"""
    parts = (command.args or "").split()
    if len(parts) != 2 or not parts[0].isdigit():
        await message.answer("Использование: /bid <номер лота> <сумма>")
        return

    await _place_bid(
        message, session, acceptor, lifecycle,
        int(parts[0]), parts[1], message.from_user
    )


@router.callback_query(F.data.startswith("bid:quick:"))
async def place_bid_quick(
    callback: CallbackQuery,
    session: AsyncSession,
    acceptor: BidAcceptor,
    lifecycle: AuctionLifecycle
):
    """Сделать ставку через быструю кнопку (текущая цена + шаг)"""
    parts = callback.data.split(":")
    auction_id = int(parts[2])
    increment = Decimal(parts[3])

    try:
        view = await lifecycle.get_auction_view(session, auction_id)
    except AuctionNotFoundError:
        await callback.answer("Аукцион не найден", show_alert=True)
        return

    # Цена могла вырасти к моменту записи, тогда придет отказ bid_too_low
    amount = view.current_price + increment
    await _place_bid(
        callback.message, session, acceptor, lifecycle,
        auction_id, amount, callback.from_user
    )
    await callback.answer()


async def _bids_text(session: AsyncSession, auction_id: int, limit: int = 10) -> str:
    """Последние ставки по лоту, новые сверху"""
    bids = await list_bids(session, auction_id)
    if not bids:
        return f"По лоту #{auction_id} еще нет ставок"

    lines = [f"📊 Ставки по лоту #{auction_id}:"]
    for bid in reversed(bids[-limit:]):
        bidder = await describe_user(session, bid.bidder_id)
        lines.append(f"{bid.amount:,} - {bidder}")
    return "\n".join(lines)


@router.callback_query(F.data.startswith("auction:bids:"))
async def show_bids(callback: CallbackQuery, session: AsyncSession):
    """История ставок аукциона"""
    auction_id = int(callback.data.split(":")[2])
    await callback.message.answer(await _bids_text(session, auction_id))
    await callback.answer()


@router.message(Command("bids"))
async def cmd_bids(message: Message, command: CommandObject, session: AsyncSession):
    """История ставок: /bids <id>"""
    if not command.args or not command.args.strip().isdigit():
        await message.answer("Использование: /bids <номер лота>")
        return

    await message.answer(await _bids_text(session, int(command.args.strip())))


@router.message(Command("mybids"))
async def cmd_mybids(
    message: Message,
    command: CommandObject,
    session: AsyncSession,
    lifecycle: AuctionLifecycle
):
    """Мои ставки: /mybids [active|won|lost|ended]"""
    status = (command.args or "").strip().lower() or None
    if status is not None and status not in BID_HISTORY_STATUSES:
        await message.answer(MYBIDS_USAGE)
        return

    user = await get_or_create_user(
        session,
        message.from_user.id,
        message.from_user.username,
        message.from_user.first_name,
        message.from_user.last_name
    )
    history = await build_bid_history(session, user.id, lifecycle.clock(), status=status)

    if not history.total:
        await message.answer("У вас пока нет ставок")
        return

    lines = ["📋 Ваши ставки:"]
    for entry in history.entries:
        lines.append(
            f"Лот #{entry.auction_id} ({escape(entry.title)}): {entry.amount:,} - "
            f"{BID_STATUS_NAMES[entry.status]}"
        )
    if not history.entries:
        lines.append("Ставок с таким статусом нет")
    lines.append(
        f"Активных: {history.active}, выиграно: {history.won}, проиграно: {history.lost}"
    )
    await message.answer("\n".join(lines))


@router.message(Command("sell"))
async def cmd_sell(
    message: Message,
    command: CommandObject,
    session: AsyncSession,
    lifecycle: AuctionLifecycle
):
    """Выставить лот: /sell <цена> <дней> <название>"""
    parts = (command.args or "").split(maxsplit=2)
    if len(parts) != 3 or not parts[1].isdigit():
        await message.answer("Использование: /sell <начальная цена> <дней> <название>")
        return

    user = await get_or_create_user(
        session,
        message.from_user.id,
        message.from_user.username,
        message.from_user.first_name,
        message.from_user.last_name
    )
    try:
        auction = await lifecycle.submit(
            session,
            seller_id=user.id,
            title=parts[2],
            starting_price=parts[0],
            duration_days=int(parts[1])
        )
    except AuctionError as e:
        await message.answer(f"❌ {e.message}")
        return

    await message.answer(f"✅ Лот #{auction.id} отправлен на модерацию")


@router.message(Command("result"))
async def cmd_result(
    message: Message,
    command: CommandObject,
    session: AsyncSession,
    lifecycle: AuctionLifecycle,
    resolver: WinnerResolver
):
    """Итог аукциона: /result <id>"""
    if not command.args or not command.args.strip().isdigit():
        await message.answer("Использование: /result <номер лота>")
        return

    auction_id = int(command.args.strip())
    try:
        view = await lifecycle.get_auction_view(session, auction_id)
        if not view.is_settled and view.status != AuctionStatus.ENDED.value:
            await message.answer(
                f"Итог лота #{auction_id} пока недоступен: "
                f"{STATUS_NAMES.get(view.status, view.status)}"
            )
            return
        winner = await resolver.resolve(session, auction_id)
    except AuctionError as e:
        await message.answer(f"❌ {e.message}")
        return

    seller = await describe_user(session, view.seller_id)
    if winner is None:
        await message.answer(f"Лот #{auction_id} завершен без ставок\n👤 Продавец: {seller}")
        return

    name = await describe_user(session, winner.bidder_id)
    await message.answer(
        f"🏆 Лот #{auction_id} продан: {name} за {winner.amount:,}\n"
        f"👤 Продавец: {seller}"
    )
