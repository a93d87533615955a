"""
Модель данных трекера.

Все источники (браузерный, прямой API, резервный) нормализуют результат
в TrackingResult. Cookie и CookieSet описывают состояние обхода защиты,
которое переиспользуется между запросами.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .errors import InvalidTrackingRequest

DEFAULT_COURIER = "ups"

# Значение статуса, когда источник не нашел ничего осмысленного
STATUS_NOT_FOUND = "Status not found"
EVENT_STATUS_UNKNOWN = "Unknown"


@dataclass(frozen=True)
class TrackingRequest:
    """Запрос на отслеживание: идентификатор посылки и курьер."""

    identifier: str
    courier: str = DEFAULT_COURIER

    def __post_init__(self):
        if not isinstance(self.identifier, str) or not self.identifier.strip():
            raise InvalidTrackingRequest("Invalid tracking number provided")
        if self.courier is not None and not isinstance(self.courier, str):
            raise InvalidTrackingRequest("Courier must be a string")

        courier = (self.courier or "").strip().lower() or DEFAULT_COURIER
        object.__setattr__(self, "identifier", self.identifier.strip())
        object.__setattr__(self, "courier", courier)


@dataclass
class TrackingEvent:
    """Одна запись истории отслеживания."""

    status: str = EVENT_STATUS_UNKNOWN
    date: str = ""
    location: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"status": self.status, "date": self.date, "location": self.location}


@dataclass
class DeliveryStatus:
    """Сводный статус доставки (по первому событию и доп. полям страницы)."""

    status: str = STATUS_NOT_FOUND
    date: str = ""
    location: str = ""
    signed_by: str = ""

    @property
    def is_sentinel(self) -> bool:
        return self.status == STATUS_NOT_FOUND

    def to_dict(self) -> Dict[str, str]:
        return {
            "status": self.status,
            "date": self.date,
            "location": self.location,
            "signedBy": self.signed_by,
        }


@dataclass
class SourceFailure:
    """Запись о неудаче источника в цепочке fallback."""

    source: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "error": self.error}


@dataclass
class TrackingResult:
    """Результат отслеживания, единый для всех источников."""

    tracking_number: str = ""
    courier: str = ""
    delivery_status: DeliveryStatus = field(default_factory=DeliveryStatus)
    events: List[TrackingEvent] = field(default_factory=list)
    source: Optional[str] = None
    degraded: bool = False
    message: Optional[str] = None
    errors: List[SourceFailure] = field(default_factory=list)

    def is_incomplete(self) -> bool:
        """
        Результат без реальных данных: нет событий и статус-заглушка.

        Такой результат считается мягкой ошибкой источника.
        """
        return not self.events and self.delivery_status.is_sentinel

    def with_request(
        self, request: TrackingRequest, source: Optional[str] = None
    ) -> "TrackingResult":
        """Копия результата с эхо-полями запроса."""
        return replace(
            self,
            tracking_number=request.identifier,
            courier=request.courier,
            source=source or self.source,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "deliveryStatus": self.delivery_status.to_dict(),
            "events": [event.to_dict() for event in self.events],
            "trackingNumber": self.tracking_number,
            "courier": self.courier,
        }
        if self.source:
            data["source"] = self.source
        if self.message:
            data["message"] = self.message
        if self.degraded:
            data["degraded"] = True
        if self.errors:
            data["errors"] = [failure.to_dict() for failure in self.errors]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackingResult":
        """
        Разбор результата в формате to_dict().

        Отсутствующие поля заменяются значениями по умолчанию.

        Raises:
            TypeError: Если data не является словарем
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")

        status_data = data.get("deliveryStatus") or {}
        delivery_status = DeliveryStatus(
            status=str(status_data.get("status") or STATUS_NOT_FOUND),
            date=str(status_data.get("date") or ""),
            location=str(status_data.get("location") or ""),
            signed_by=str(status_data.get("signedBy") or ""),
        )

        events = []
        for item in data.get("events") or []:
            if not isinstance(item, dict):
                continue
            events.append(
                TrackingEvent(
                    status=str(item.get("status") or EVENT_STATUS_UNKNOWN),
                    date=str(item.get("date") or ""),
                    location=str(item.get("location") or ""),
                )
            )

        return cls(
            tracking_number=str(data.get("trackingNumber") or ""),
            courier=str(data.get("courier") or ""),
            delivery_status=delivery_status,
            events=events,
            message=data.get("message"),
        )


@dataclass(frozen=True)
class Cookie:
    """Cookie, полученный из браузера."""

    name: str
    value: str
    domain: str = ""
    path: str = "/"
    expires: Optional[float] = None
    secure: bool = False
    http_only: bool = False
    same_site: Optional[str] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires is None or self.expires <= 0:
            # Сессионный cookie
            return False
        return self.expires <= (now if now is not None else time.time())

    @classmethod
    def from_browser(cls, data: Dict[str, Any]) -> "Cookie":
        """
        Создание из словаря в формате Selenium (expiry, httpOnly, sameSite).

        Raises:
            KeyError: Если нет name или value
            TypeError: Если data не словарь
        """
        if not isinstance(data, dict):
            raise TypeError(f"Cookie entry must be an object, got {type(data).__name__}")

        expires = data.get("expiry", data.get("expires"))
        return cls(
            name=str(data["name"]),
            value=str(data["value"]),
            domain=str(data.get("domain") or ""),
            path=str(data.get("path") or "/"),
            expires=float(expires) if expires is not None else None,
            secure=bool(data.get("secure", False)),
            http_only=bool(data.get("httpOnly", False)),
            same_site=data.get("sameSite"),
        )

    def to_browser(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "value": self.value,
            "path": self.path,
            "secure": self.secure,
            "httpOnly": self.http_only,
        }
        if self.domain:
            data["domain"] = self.domain
        if self.expires is not None:
            data["expiry"] = self.expires
        if self.same_site:
            data["sameSite"] = self.same_site
        return data


class CookieSet:
    """
    Упорядоченный неизменяемый набор cookies.

    Сохраняется и заменяется целиком, поля отдельных cookies не сливаются.
    """

    def __init__(self, cookies: Iterable[Cookie] = ()):
        self._cookies = tuple(cookies)

    def __iter__(self) -> Iterator[Cookie]:
        return iter(self._cookies)

    def __len__(self) -> int:
        return len(self._cookies)

    def __bool__(self) -> bool:
        return bool(self._cookies)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CookieSet):
            return NotImplemented
        return self._cookies == other._cookies

    def __hash__(self) -> int:
        return hash(self._cookies)

    def __repr__(self) -> str:
        names = ", ".join(cookie.name for cookie in self._cookies)
        return f"CookieSet([{names}])"

    def live(self, now: Optional[float] = None) -> "CookieSet":
        """Только неистекшие cookies."""
        return CookieSet(c for c in self._cookies if not c.is_expired(now))

    def names(self) -> List[str]:
        return [cookie.name for cookie in self._cookies]

    def to_list(self) -> List[Dict[str, Any]]:
        return [cookie.to_browser() for cookie in self._cookies]

    @classmethod
    def from_list(cls, data: Any) -> "CookieSet":
        """
        Строгий разбор списка cookies.

        Raises:
            TypeError, KeyError, ValueError: При некорректной структуре
        """
        if not isinstance(data, list):
            raise TypeError(f"Cookie set must be a list, got {type(data).__name__}")
        return cls(Cookie.from_browser(item) for item in data)
