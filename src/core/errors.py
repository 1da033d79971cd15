"""
Feltyper som delas mellan kärnan, tjänsterna och API-lagret.

API-lagret översätter dem till HTTPException med ett begripligt meddelande
(på spanska, det är det användaren ser).
"""
from __future__ import annotations


class QuotationValidationError(ValueError):
    """Användarfel: tomt kundnamn, tom projekttyp, inget valt modul osv."""


class SnapshotImportError(ValueError):
    """Importfilen har fel format. Aktuellt tillstånd lämnas orört."""


class AdvisoryError(RuntimeError):
    """AI-rådgivaren kunde inte leverera något svar (alla modeller föll)."""
