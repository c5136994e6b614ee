import typing as t

from django.contrib.auth.base_user import AbstractBaseUser
from ninja_extra import ControllerBase


class UserAwareController(ControllerBase):
    def user(self) -> AbstractBaseUser:
        """Get the authenticated user for this request."""
        return t.cast(AbstractBaseUser, self.context.request.user)  # type: ignore[union-attr]

    def validator_identity(self) -> str:
        """The opaque identity recorded against every redemption attempt made by this user."""
        return self.user().get_username()
