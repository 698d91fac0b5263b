"""
Тесты обработчиков бота

Telegram-объекты заменены моками, база настоящая.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from bot.handlers import moderation
from bot.handlers.auction import (
    cmd_auction,
    cmd_bid,
    cmd_bids,
    cmd_mybids,
    cmd_result,
    cmd_sell,
    place_bid_quick,
    show_bids,
)
from bot.handlers.moderation import (
    RejectReasonStates,
    cmd_pending,
    handle_moderation,
    process_reject_reason,
)
from bot.keyboards import QUICK_INCREMENTS, get_auction_keyboard, get_moderation_keyboard
from bot.middlewares.database import DatabaseMiddleware
from database.models.auction import AuctionStatus
from database.models.user import User
from services import auction as store
from services.user import get_or_create_user


def make_command(args):
    command = MagicMock()
    command.args = args
    return command


def last_answer(message) -> str:
    return message.answer.await_args.args[0]


@pytest.fixture
def state():
    """FSM-контекст"""
    fsm = AsyncMock()
    fsm.get_data.return_value = {}
    return fsm


@pytest.fixture
def as_admin(monkeypatch, tg_user):
    monkeypatch.setattr(moderation.settings, "ADMIN_USER_IDS", str(tg_user.id))


class TestAuctionCommands:
    """Команды аукциона"""

    async def test_show_live_auction(self, message, session, lifecycle, live_auction):
        auction_id = (await live_auction()).id

        await cmd_auction(message, make_command(str(auction_id)), session, lifecycle)

        text = last_answer(message)
        assert f"Лот #{auction_id}" in text
        assert "Идут торги" in text
        assert message.answer.await_args.kwargs["reply_markup"] is not None

    async def test_show_unknown_auction(self, message, session, lifecycle):
        await cmd_auction(message, make_command("404"), session, lifecycle)
        assert "не найден" in last_answer(message)

    async def test_auction_usage(self, message, session, lifecycle):
        await cmd_auction(message, make_command(None), session, lifecycle)
        assert "Использование" in last_answer(message)

    async def test_ended_auction_has_no_keyboard(self, message, session, lifecycle, live_auction, clock):
        auction_id = (await live_auction()).id
        clock.advance(days=1)

        await cmd_auction(message, make_command(str(auction_id)), session, lifecycle)

        assert "Торги завершены" in last_answer(message)
        assert message.answer.await_args.kwargs["reply_markup"] is None


class TestBidCommand:
    """Ставка через /bid"""

    async def test_accepted(self, message, session, acceptor, lifecycle, live_auction):
        auction_id = (await live_auction()).id

        await cmd_bid(message, make_command(f"{auction_id} 150"), session, acceptor, lifecycle)

        assert "принята" in last_answer(message)
        auction = await store.get_auction(session, auction_id)
        assert auction.total_bid_count == 1

    async def test_too_low_names_leader(self, message, session, acceptor, lifecycle, live_auction, user_factory):
        auction_id = (await live_auction()).id
        leader_id = (await user_factory(username="leader")).id
        await acceptor.place_bid(session, auction_id, leader_id, "300")

        await cmd_bid(message, make_command(f"{auction_id} 200"), session, acceptor, lifecycle)

        text = last_answer(message)
        assert "выше 300" in text
        assert "@leader" in text

    async def test_self_bid(self, message, session, acceptor, lifecycle, live_auction, tg_user):
        # Продавец лота тот же пользователь Telegram
        seller = await get_or_create_user(session, tg_user.id, tg_user.username, tg_user.first_name)
        auction_id = (await live_auction(seller=seller)).id

        await cmd_bid(message, make_command(f"{auction_id} 500"), session, acceptor, lifecycle)

        assert "Продавец не может" in last_answer(message)

    async def test_invalid_amount(self, message, session, acceptor, lifecycle, live_auction):
        auction_id = (await live_auction()).id

        await cmd_bid(message, make_command(f"{auction_id} abc"), session, acceptor, lifecycle)

        assert "Некорректная сумма" in last_answer(message)

    async def test_usage(self, message, session, acceptor, lifecycle):
        await cmd_bid(message, make_command("1"), session, acceptor, lifecycle)
        assert "Использование" in last_answer(message)


class TestBidCallbacks:
    """Быстрые ставки и история"""

    async def test_quick_bid_adds_increment(self, callback, session, acceptor, lifecycle, live_auction):
        auction_id = (await live_auction(starting_price="100")).id
        callback.data = f"bid:quick:{auction_id}:50"

        await place_bid_quick(callback, session, acceptor, lifecycle)

        auction = await store.get_auction(session, auction_id)
        assert Decimal(auction.current_price) == Decimal("150.00")
        callback.answer.assert_awaited()

    async def test_quick_bid_unknown_auction(self, callback, session, acceptor, lifecycle):
        callback.data = "bid:quick:404:10"

        await place_bid_quick(callback, session, acceptor, lifecycle)

        callback.answer.assert_awaited_once_with("Аукцион не найден", show_alert=True)

    async def test_history_newest_first(self, callback, session, acceptor, live_auction, user_factory):
        auction_id = (await live_auction()).id
        first_id = (await user_factory(username="first")).id
        second_id = (await user_factory(username="second")).id
        await acceptor.place_bid(session, auction_id, first_id, "110")
        await acceptor.place_bid(session, auction_id, second_id, "120")
        callback.data = f"auction:bids:{auction_id}"

        await show_bids(callback, session)

        lines = last_answer(callback.message).split("\n")
        assert lines[1] == "120.00 - @second"
        assert lines[2] == "110.00 - @first"

    async def test_history_empty(self, callback, session, live_auction):
        auction_id = (await live_auction()).id
        callback.data = f"auction:bids:{auction_id}"

        await show_bids(callback, session)

        assert "еще нет ставок" in last_answer(callback.message)


class TestSellAndResult:
    """Выставление лота и итог"""

    async def test_sell_creates_pending(self, message, session, lifecycle):
        await cmd_sell(message, make_command("250 2 Старый самовар"), session, lifecycle)

        assert "отправлен на модерацию" in last_answer(message)
        pending = await lifecycle.list_pending(session)
        assert [view.title for view in pending] == ["Старый самовар"]
        assert pending[0].duration_days == 2

    async def test_sell_bad_duration(self, message, session, lifecycle):
        await cmd_sell(message, make_command("250 7 Самовар"), session, lifecycle)
        assert "Длительность" in last_answer(message)

    async def test_result_while_live(self, message, session, lifecycle, resolver, live_auction):
        auction_id = (await live_auction()).id

        await cmd_result(message, make_command(str(auction_id)), session, lifecycle, resolver)

        assert "пока недоступен" in last_answer(message)
        auction = await store.get_auction(session, auction_id)
        assert auction.status == AuctionStatus.APPROVED.value

    async def test_result_sold(self, message, session, acceptor, lifecycle, resolver, live_auction, user_factory, clock):
        auction_id = (await live_auction()).id
        winner_id = (await user_factory(username="winner")).id
        await acceptor.place_bid(session, auction_id, winner_id, "500")
        clock.advance(days=1)

        await cmd_result(message, make_command(str(auction_id)), session, lifecycle, resolver)

        text = last_answer(message)
        assert "продан" in text
        assert "@winner" in text
        assert "Продавец: @seller" in text

    async def test_result_unsold(self, message, session, lifecycle, resolver, live_auction, clock):
        auction_id = (await live_auction()).id
        clock.advance(days=1)

        await cmd_result(message, make_command(str(auction_id)), session, lifecycle, resolver)

        text = last_answer(message)
        assert "без ставок" in text
        assert "Продавец: @seller" in text

    async def test_result_platform_listing(self, message, session, lifecycle, resolver, clock):
        """Лот без продавца выставлен площадкой"""
        auction = await lifecycle.submit(session, None, "Часы", "100", 1)
        auction_id = (await lifecycle.approve(session, auction.id)).id
        clock.advance(days=1)

        await cmd_result(message, make_command(str(auction_id)), session, lifecycle, resolver)

        assert "Продавец: площадка" in last_answer(message)


class TestModeration:
    """Модерация"""

    async def test_pending_requires_rights(self, message, session, lifecycle):
        await cmd_pending(message, session, lifecycle)
        assert "нет прав" in last_answer(message)

    async def test_pending_lists_cards(self, message, session, lifecycle, as_admin):
        auction_id = (await lifecycle.submit(session, None, "Ваза", "100", 1)).id

        await cmd_pending(message, session, lifecycle)

        assert f"Лот #{auction_id}" in last_answer(message)
        markup = message.answer.await_args.kwargs["reply_markup"]
        assert markup.inline_keyboard[0][0].callback_data == f"moderation:approve:{auction_id}"

    async def test_moderator_flag_grants_rights(self, message, session, lifecycle, tg_user):
        session.add(User(telegram_id=tg_user.id, username="mod", is_moderator=True))
        await session.commit()

        await cmd_pending(message, session, lifecycle)

        assert "Нет лотов на модерации" in last_answer(message)

    async def test_approve(self, callback, session, state, lifecycle, as_admin, clock):
        auction_id = (await lifecycle.submit(session, None, "Ваза", "100", 2)).id
        callback.data = f"moderation:approve:{auction_id}"

        await handle_moderation(callback, session, state, lifecycle)

        view = await lifecycle.get_auction_view(session, auction_id)
        assert view.status == "approved"
        callback.message.edit_reply_markup.assert_awaited_once_with(reply_markup=None)
        assert "одобрен" in callback.answer.await_args.args[0]

    async def test_second_approve_reports_error(self, callback, session, state, lifecycle, as_admin):
        auction_id = (await lifecycle.submit(session, None, "Ваза", "100", 1)).id
        await lifecycle.approve(session, auction_id)
        callback.data = f"moderation:approve:{auction_id}"

        await handle_moderation(callback, session, state, lifecycle)

        assert "Недопустимый переход" in callback.answer.await_args.args[0]

    async def test_approve_without_rights(self, callback, session, state, lifecycle):
        auction_id = (await lifecycle.submit(session, None, "Ваза", "100", 1)).id
        callback.data = f"moderation:approve:{auction_id}"

        await handle_moderation(callback, session, state, lifecycle)

        callback.answer.assert_awaited_once_with("У вас нет прав для модерации", show_alert=True)
        view = await lifecycle.get_auction_view(session, auction_id)
        assert view.status == "pending"

    async def test_reject_asks_reason(self, callback, session, state, lifecycle, as_admin):
        auction_id = (await lifecycle.submit(session, None, "Ваза", "100", 1)).id
        callback.data = f"moderation:reject:{auction_id}"

        await handle_moderation(callback, session, state, lifecycle)

        state.update_data.assert_awaited_once_with(auction_id=auction_id)
        state.set_state.assert_awaited_once_with(RejectReasonStates.waiting_reason)

    async def test_reject_reason_applied(self, message, session, state, lifecycle):
        auction_id = (await lifecycle.submit(session, None, "Ваза", "100", 1)).id
        state.get_data.return_value = {"auction_id": auction_id}
        message.text = "Нет фотографий"

        await process_reject_reason(message, session, state, lifecycle)

        view = await lifecycle.get_auction_view(session, auction_id)
        assert view.status == "rejected"
        assert view.rejection_reason == "Нет фотографий"
        state.clear.assert_awaited_once()

    async def test_empty_reason_keeps_state(self, message, session, state, lifecycle):
        state.get_data.return_value = {"auction_id": 1}
        message.text = "   "

        await process_reject_reason(message, session, state, lifecycle)

        assert "не пустую причину" in last_answer(message)
        state.clear.assert_not_awaited()


class TestKeyboards:
    """Клавиатуры"""

    def test_auction_keyboard(self):
        markup = get_auction_keyboard(7)
        data = [row[0].callback_data for row in markup.inline_keyboard]
        assert data == [f"bid:quick:7:{inc}" for inc in QUICK_INCREMENTS] + ["auction:bids:7"]

    def test_moderation_keyboard(self):
        markup = get_moderation_keyboard(3)
        data = [button.callback_data for row in markup.inline_keyboard for button in row]
        assert data == ["moderation:approve:3", "moderation:reject:3"]


class TestDatabaseMiddleware:
    """Сессия БД в данных обработчика"""

    async def test_injects_session(self, session_maker):
        middleware = DatabaseMiddleware(session_maker)
        handler = AsyncMock(return_value="ok")
        event = MagicMock()
        data = {}

        result = await middleware(handler, event, data)

        assert result == "ok"
        assert "session" in data
        handler.assert_awaited_once_with(event, data)


class TestHistoryCommands:
    """Команды истории ставок"""

    async def test_bids_command(self, message, session, acceptor, live_auction, user_factory):
        auction_id = (await live_auction()).id
        bidder_id = (await user_factory(username="collector")).id
        await acceptor.place_bid(session, auction_id, bidder_id, "175")

        await cmd_bids(message, make_command(str(auction_id)), session)

        assert "175.00 - @collector" in last_answer(message)

    async def test_bids_usage(self, message, session):
        await cmd_bids(message, make_command("abc"), session)
        assert "Использование" in last_answer(message)

    async def test_mybids(self, message, session, acceptor, lifecycle, live_auction):
        auction_id = (await live_auction()).id
        await cmd_bid(message, make_command(f"{auction_id} 110"), session, acceptor, lifecycle)
        await cmd_bid(message, make_command(f"{auction_id} 140"), session, acceptor, lifecycle)

        await cmd_mybids(message, make_command(None), session, lifecycle)

        lines = last_answer(message).split("\n")
        assert lines[1:] == [
            f"Лот #{auction_id} (Ковер ручной работы): 140.00 - идут торги",
            f"Лот #{auction_id} (Ковер ручной работы): 110.00 - идут торги",
            "Активных: 2, выиграно: 0, проиграно: 0",
        ]

    async def test_mybids_empty(self, message, session, lifecycle):
        await cmd_mybids(message, make_command(None), session, lifecycle)
        assert "нет ставок" in last_answer(message)

    async def test_mybids_status_filter(
        self, message, session, acceptor, lifecycle, live_auction, user_factory, clock
    ):
        won_id = (await live_auction()).id
        lost_id = (await live_auction()).id
        rival_id = (await user_factory(username="rival")).id
        await cmd_bid(message, make_command(f"{won_id} 150"), session, acceptor, lifecycle)
        await cmd_bid(message, make_command(f"{lost_id} 150"), session, acceptor, lifecycle)
        await acceptor.place_bid(session, lost_id, rival_id, "200")
        clock.advance(days=1)

        await cmd_mybids(message, make_command("won"), session, lifecycle)
        lines = last_answer(message).split("\n")
        assert lines[1:] == [
            f"Лот #{won_id} (Ковер ручной работы): 150.00 - выиграна",
            "Активных: 0, выиграно: 1, проиграно: 1",
        ]

        await cmd_mybids(message, make_command("LOST"), session, lifecycle)
        assert f"Лот #{lost_id} (Ковер ручной работы): 150.00 - перебита" in last_answer(message)

        await cmd_mybids(message, make_command("active"), session, lifecycle)
        assert "Ставок с таким статусом нет" in last_answer(message)

    async def test_mybids_unknown_status(self, message, session, lifecycle):
        await cmd_mybids(message, make_command("sold"), session, lifecycle)
        assert last_answer(message) == "Использование: /mybids [active|won|lost|ended]"
