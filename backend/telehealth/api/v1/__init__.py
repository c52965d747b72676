from telehealth.api.v1 import appointments, auth, availability

__all__ = [
    "auth",
    "appointments",
    "availability",
]
