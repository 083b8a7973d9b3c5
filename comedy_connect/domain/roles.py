from enum import Enum


class UserRole(str, Enum):
    AUDIENCE = "AUDIENCE"
    ORGANIZER_UNVERIFIED = "ORGANIZER_UNVERIFIED"
    ORGANIZER_VERIFIED = "ORGANIZER_VERIFIED"
    COMEDIAN_UNVERIFIED = "COMEDIAN_UNVERIFIED"
    COMEDIAN_VERIFIED = "COMEDIAN_VERIFIED"
    ADMIN = "ADMIN"

    @property
    def is_admin(self) -> bool:
        return self is UserRole.ADMIN

    @property
    def is_creator(self) -> bool:
        return self.value.startswith(("ORGANIZER", "COMEDIAN"))

    @property
    def is_comedian(self) -> bool:
        return self.value.startswith("COMEDIAN")

    @property
    def is_verified(self) -> bool:
        return self in {
            UserRole.ORGANIZER_VERIFIED,
            UserRole.COMEDIAN_VERIFIED,
            UserRole.ADMIN,
        }


# Admin review moves a creator between these two sides.
VERIFIED_ROLES = {
    UserRole.ORGANIZER_UNVERIFIED: UserRole.ORGANIZER_VERIFIED,
    UserRole.ORGANIZER_VERIFIED: UserRole.ORGANIZER_VERIFIED,
    UserRole.COMEDIAN_UNVERIFIED: UserRole.COMEDIAN_VERIFIED,
    UserRole.COMEDIAN_VERIFIED: UserRole.COMEDIAN_VERIFIED,
}

UNVERIFIED_ROLES = {
    UserRole.ORGANIZER_UNVERIFIED: UserRole.ORGANIZER_UNVERIFIED,
    UserRole.ORGANIZER_VERIFIED: UserRole.ORGANIZER_UNVERIFIED,
    UserRole.COMEDIAN_UNVERIFIED: UserRole.COMEDIAN_UNVERIFIED,
    UserRole.COMEDIAN_VERIFIED: UserRole.COMEDIAN_UNVERIFIED,
}
