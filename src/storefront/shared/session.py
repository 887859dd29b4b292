"""Signed-in customer identity as seen by the storefront core."""

from dataclasses import dataclass

from storefront.shared.errors import AuthenticationRequired
from storefront.shared.observable import Observable
from storefront.utils.logging import bind_customer, clear_context


@dataclass(frozen=True)
class Customer:
    user_id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class UserSession(Observable):
    """Holds the current customer, or ``None`` when signed out."""

    def __init__(self, customer: Customer | None = None) -> None:
        super().__init__()
        self.customer = customer

    @property
    def is_authenticated(self) -> bool:
        return self.customer is not None

    def sign_in(self, customer: Customer) -> None:
        self.customer = customer
        bind_customer(customer)
        self._notify(customer)

    def sign_out(self) -> None:
        self.customer = None
        clear_context()
        self._notify(None)

    def require_customer(self) -> Customer:
        if self.customer is None:
            raise AuthenticationRequired()
        return self.customer
