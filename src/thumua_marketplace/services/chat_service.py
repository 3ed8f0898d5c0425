"""ProductConsultant: the storefront's AI shopping assistant.

Chat flow:
    1. Load the user's recent history from Redis (guests have none).
    2. If the message looks like a product search, query approved listings.
    3. Ask the LLM (via LiteLLM) with the system prompt, history, the new
       message and any products found as extra context.
    4. Without an API key, or if the LLM keeps failing, answer with a
       rule-based reply instead. The user always gets a response.
    5. Store the user message and the reply (never the system prompts).

A Redis outage only costs the conversation memory: history reads come back
empty and writes are skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import litellm
from redis.exceptions import RedisError
from tenacity import retry, stop_after_attempt, wait_exponential

from thumua_marketplace.config import get_settings
from thumua_marketplace.domain.exceptions import InvalidRequestError
from thumua_marketplace.infrastructure.database.repositories import ProductRepository
from thumua_marketplace.logging_config import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from thumua_marketplace.infrastructure.database.orm_models import Product
    from thumua_marketplace.infrastructure.redis_client import ChatHistoryStore

logger = get_logger(__name__)

SYSTEM_PROMPT = """Bạn là trợ lý AI của Thu Mua Đồ Cũ, sàn mua bán và trao đổi đồ cũ.

Website cho phép người dùng:
1. Đăng bán đồ cũ và tìm mua sản phẩm
2. Trao đổi sản phẩm của mình lấy sản phẩm của người khác
3. Theo dõi đơn hàng và trạng thái giao hàng
4. Nhắn tin trực tiếp với người bán
5. Quản lý (đăng, sửa, xóa) sản phẩm của mình

Bạn hỗ trợ tìm sản phẩm, giải thích tính năng trao đổi, quy trình mua bán,
cách đăng sản phẩm, đơn hàng và thanh toán.

Chỉ trả lời các câu hỏi liên quan đến website; với chủ đề khác, nhẹ nhàng
hướng người dùng quay lại các chức năng của website. Luôn trả lời bằng
tiếng Việt, thân thiện và cụ thể."""

GREETING = (
    "Xin chào! Tôi là trợ lý AI của Thu Mua Đồ Cũ. Tôi có thể giúp bạn tìm "
    "sản phẩm, tư vấn giá, hướng dẫn trao đổi hoặc các chức năng khác của "
    "website. Bạn cần hỗ trợ gì?"
)

SEARCH_KEYWORDS = ("tìm", "kiếm", "search", "có", "bán", "mua", "sản phẩm", "đồ", "item")
# Questions about *how* to search are help requests, not searches.
NOT_SEARCH_PHRASES = ("tìm kiếm", "cách tìm", "hướng dẫn", "làm sao")
STOP_WORDS = frozenset(
    {"tìm", "kiếm", "cho", "tôi", "mình", "bạn", "có", "bán", "mua",
     "sản", "phẩm", "đồ", "item", "search", "find"}
)
MAX_PRODUCTS = 5


def detect_search_intent(message: str) -> bool:
    lowered = message.lower()
    if any(phrase in lowered for phrase in NOT_SEARCH_PHRASES):
        return False
    return any(keyword in lowered for keyword in SEARCH_KEYWORDS)


def extract_search_query(message: str) -> str:
    """Strip filler words; fall back to the whole message if nothing is left."""
    keywords = [
        word for word in message.lower().split()
        if len(word) > 2 and word not in STOP_WORDS
    ]
    return " ".join(keywords).strip() or message.strip()


def format_price(price: int) -> str:
    return f"{price:,}".replace(",", ".") + " ₫"


def fallback_reply(message: str, products: list[Product] | None = None) -> str:
    """Rule-based answer used when no LLM is available."""
    if products:
        listing = "\n".join(f"• {p.title} - {format_price(p.price)}" for p in products)
        return (
            f"Tôi đã tìm thấy {len(products)} sản phẩm phù hợp:\n\n{listing}\n\n"
            "Bạn có thể bấm vào sản phẩm để xem chi tiết!"
        )

    lowered = message.lower()
    if any(k in lowered for k in ("tìm", "search", "kiếm")):
        return (
            "Bạn có thể dùng thanh tìm kiếm ở đầu trang để tìm theo tên hoặc mô tả, "
            "hoặc lọc theo danh mục và khoảng giá."
        )
    if any(k in lowered for k in ("giá", "price", "rẻ")):
        return (
            "Giá do người bán tự đặt. Bạn có thể thương lượng qua tin nhắn, "
            "hoặc trao đổi sản phẩm thay vì trả tiền."
        )
    if any(k in lowered for k in ("trao đổi", "đổi", "exchange")):
        return (
            'Vào trang "Trao Đổi", chọn sản phẩm của bạn và sản phẩm bạn muốn, '
            "rồi gửi đề xuất. Người bán sẽ chấp nhận hoặc từ chối."
        )
    if any(k in lowered for k in ("đăng ký", "đăng nhập", "login", "register")):
        return "Bạn có thể đăng ký hoặc đăng nhập bằng email và mật khẩu để dùng đầy đủ tính năng."
    if any(k in lowered for k in ("đăng", "bán", "post")):
        return (
            'Sau khi đăng nhập, chọn "Đăng sản phẩm", điền thông tin, tải ảnh lên '
            "và chờ quản trị viên duyệt."
        )
    if any(k in lowered for k in ("thanh toán", "mua", "payment")):
        return (
            "Bạn có thể thêm sản phẩm vào giỏ và thanh toán (COD hoặc VNPay), "
            "hoặc nhắn tin với người bán để thỏa thuận."
        )
    return (
        "Cảm ơn bạn đã hỏi! Tôi có thể giúp về tìm kiếm, trao đổi, đăng sản phẩm "
        "hoặc đơn hàng. Bạn muốn biết thêm điều gì?"
    )


@dataclass
class ChatReply:
    response: str
    products: list[Product] = field(default_factory=list)


class ProductConsultant:
    """Answers storefront questions, optionally backed by an LLM."""

    def __init__(
        self,
        session: AsyncSession,
        history: ChatHistoryStore | None = None,
        model: str | None = None,
    ) -> None:
        self._products = ProductRepository(session)
        self._history = history
        self._model = model

    async def chat(self, user_id: str | None, message: str) -> ChatReply:
        """Answer one message. ``user_id=None`` means a guest without history."""
        message = (message or "").strip()
        if not message:
            raise InvalidRequestError("Please enter a question", code="EMPTY_MESSAGE")

        keep_history = self._history is not None and user_id is not None
        past = await self._load_history(user_id) if keep_history else []

        products: list[Product] = []
        if detect_search_intent(message):
            products = await self._products.search(
                extract_search_query(message), limit=MAX_PRODUCTS
            )

        reply = await self._answer(message, past, products)

        if keep_history:
            await self._save_history(
                user_id,
                [
                    {"role": "user", "content": message},
                    {"role": "assistant", "content": reply},
                ],
            )

        logger.info(
            "chat.answered",
            user_id=user_id or "guest",
            products_found=len(products),
        )
        return ChatReply(response=reply, products=products)

    async def clear(self, user_id: str) -> str:
        """Forget the user's conversation and return the opening greeting."""
        if self._history is not None:
            try:
                await self._history.clear(user_id)
            except RedisError as exc:
                logger.warning("chat.history_unavailable", op="clear", error=str(exc))
        return GREETING

    async def get_history(self, user_id: str) -> list[dict[str, str]]:
        if self._history is None:
            return []
        return await self._load_history(user_id)

    async def _load_history(self, user_id: str) -> list[dict[str, str]]:
        try:
            return await self._history.get(user_id)
        except RedisError as exc:
            logger.warning("chat.history_unavailable", op="read", error=str(exc))
            return []

    async def _save_history(self, user_id: str, messages: list[dict[str, str]]) -> None:
        try:
            await self._history.extend(user_id, messages)
        except RedisError as exc:
            logger.warning("chat.history_unavailable", op="write", error=str(exc))

    async def _answer(
        self,
        message: str,
        past: list[dict[str, str]],
        products: list[Product],
    ) -> str:
        settings = get_settings()
        if not settings.llm_enabled:
            return fallback_reply(message, products)

        messages = [{"role": "system", "content": SYSTEM_PROMPT}, *past]
        messages.append({"role": "user", "content": message})
        if products:
            found = "\n".join(
                f"- {p.title} ({format_price(p.price)}) - {p.category or 'khác'}"
                for p in products
            )
            messages.append({
                "role": "system",
                "content": (
                    f"Người dùng đang tìm sản phẩm. Đã tìm thấy {len(products)} sản phẩm:\n"
                    f"{found}\n\nHãy giới thiệu các sản phẩm này một cách tự nhiên."
                ),
            })

        try:
            return await self._call_llm(messages)
        except Exception as exc:
            logger.warning("chat.llm_failed", error=str(exc))
            return fallback_reply(message, products)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _call_llm(self, messages: list[dict[str, str]]) -> str:
        settings = get_settings()
        response = await litellm.acompletion(
            model=self._model or settings.litellm_model,
            messages=messages,
            max_tokens=settings.litellm_max_tokens,
            temperature=settings.litellm_temperature,
            api_key=settings.openai_api_key,
        )
        content = response.choices[0].message.content
        if not content:
            raise ValueError("LLM returned empty response")
        return content.strip()
