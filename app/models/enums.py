from enum import Enum

class Role(str, Enum):
    ADMIN = "ADMIN"
    TRAINER = "TRAINER"
    CLIENT = "CLIENT"


class ClientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ENQUIRED = "enquired"


class PlanKind(str, Enum):
    DIET = "diet"
    WORKOUT = "workout"


class RenewalType(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class FitnessLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
