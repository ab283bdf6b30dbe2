from __future__ import annotations


class ClinicError(Exception):
    """Erreur métier du cabinet (traduite en code HTTP par l'API)."""


class NotFoundError(ClinicError):
    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} {entity_id} introuvable.")
        self.entity = entity
        self.entity_id = entity_id


class MissingReferenceError(ClinicError):
    """Une clé étrangère (patientId, treatmentId, ...) pointe vers un enregistrement absent."""

    def __init__(self, field: str, entity_id: int) -> None:
        super().__init__(f"Référence invalide: {field}={entity_id} n'existe pas.")
        self.field = field
        self.entity_id = entity_id


class InvalidTransitionError(ClinicError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Transition de statut impossible: {current} -> {target}.")
        self.current = current
        self.target = target


class StockError(ClinicError):
    pass


class DocumentRenderError(ClinicError):
    """Échec du rendu d'un document: aucun document n'est enregistré."""


class TemplateNotFoundError(DocumentRenderError):
    def __init__(self, template_name: str) -> None:
        super().__init__(f"Modèle de document introuvable: {template_name}.html")
        self.template_name = template_name
