"""User-facing string tables, keyed by locale code."""

from __future__ import annotations

from collections.abc import Mapping

ES: dict[str, str] = {
    "status.pending": "pendiente",
    "status.approved": "validado",
    "status.rejected": "rechazado",
    "toast.status_updated": "Estado actualizado a {status}.",
    "toast.status_update_failed": "No se pudo actualizar el estado: {error}",
    "toast.submission_created": "Reporte enviado correctamente.",
    "toast.unexpected_error": "Ocurrió un error inesperado.",
    "toast.password_updated": "Contraseña actualizada.",
    "toast.reset_link_sent": "Si el email existe, te enviamos un enlace para restablecer la contraseña.",
    "form.required_fields": "Por favor, completa todos los campos requeridos.",
    "form.photo_too_large": "El archivo es demasiado grande (máx 5MB).",
    "form.photo_count": "Se requieren entre {min} y {max} fotos.",
    "form.passwords_differ": "Las contraseñas no coinciden.",
    "form.password_weak": "La contraseña no cumple los requisitos.",
    "email.welcome.subject": "Bienvenido a Tracker de Producción",
    "email.welcome.body": (
        "Hola {client_name},\n\n"
        "Tu cuenta fue creada.\n"
        "Email: {email}\n"
        "Contraseña temporal: {password}\n\n"
        "Ingresá en {site_url}/login y cambiá tu contraseña.\n\n"
        "Saludos,\nSoporte"
    ),
    "email.recovery.subject": "Restablecer contraseña",
    "email.recovery.body": (
        "Recibimos un pedido para restablecer tu contraseña.\n\n"
        "Abrí este enlace para elegir una nueva: {link}\n\n"
        "Si no lo pediste, ignorá este mensaje."
    ),
    "email.confirm.subject": "Confirmá tu cuenta",
    "email.confirm.body": "Confirmá tu email abriendo este enlace: {link}",
}

EN: dict[str, str] = {
    "status.pending": "pending",
    "status.approved": "approved",
    "status.rejected": "rejected",
    "toast.status_updated": "Status updated to {status}.",
    "toast.status_update_failed": "Could not update status: {error}",
    "toast.submission_created": "Report submitted.",
    "toast.unexpected_error": "An unexpected error occurred.",
    "toast.password_updated": "Password updated.",
    "toast.reset_link_sent": "If the email exists, a password reset link has been sent.",
    "form.required_fields": "Please fill in all required fields.",
    "form.photo_too_large": "The file is too large (max 5MB).",
    "form.photo_count": "Between {min} and {max} photos are required.",
    "form.passwords_differ": "Passwords do not match.",
    "form.password_weak": "The password does not meet the requirements.",
    "email.welcome.subject": "Welcome to Production Tracker",
    "email.welcome.body": (
        "Hello {client_name},\n\n"
        "Your account has been created.\n"
        "Email: {email}\n"
        "Temporary password: {password}\n\n"
        "Sign in at {site_url}/login and change your password.\n\n"
        "Regards,\nSupport"
    ),
    "email.recovery.subject": "Reset your password",
    "email.recovery.body": (
        "We received a request to reset your password.\n\n"
        "Open this link to choose a new one: {link}\n\n"
        "If you did not ask for this, ignore this message."
    ),
    "email.confirm.subject": "Confirm your account",
    "email.confirm.body": "Confirm your email by opening this link: {link}",
}

LOCALES: dict[str, Mapping[str, str]] = {"es": ES, "en": EN}


class Translator:
    """Look up and format strings from an injected table."""

    def __init__(self, table: Mapping[str, str]) -> None:
        self._table = table

    @classmethod
    def for_locale(cls, code: str) -> "Translator":
        return cls(LOCALES.get(code, ES))

    def __call__(self, key: str, **params: object) -> str:
        template = self._table.get(key, key)
        return template.format(**params) if params else template

    def status_label(self, status: str) -> str:
        return self(f"status.{status}")
