"""Biometric gates. Platform prompts live outside this package; these are the defaults."""


class UnavailableBiometrics:
    """No biometric hardware: every check reports False."""

    def has_hardware(self) -> bool:
        return False

    def is_enrolled(self) -> bool:
        return False

    def authenticate(self, prompt_message: str) -> bool:
        return False
