"""
Mapping ORM avec SQLAlchemy (classical mapping).

On définit les tables séparément, puis on mappe les classes
du domaine sur ces tables. Cela permet au modèle de domaine
de rester ignorant de la persistance (persistence ignorance).

Les noms de colonnes SQL restent en ASCII pour la compatibilité,
le mapping traduit vers les attributs français du domaine.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    event,
    inspect,
)
from sqlalchemy.orm import registry, relationship

from inventaire.domain import model

metadata = MetaData()
mapper_registry = registry(metadata=metadata)

# --- Définition des tables ---

produits = Table(
    "produits",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("code", String(100), unique=True),
    Column("nom", String(100), nullable=False),
    Column("description", String(1000)),
    Column("categorie", Enum(model.Categorie), nullable=False),
    Column("type_produit", Enum(model.TypeProduit), nullable=False),
    Column("prix_unitaire", Float, nullable=False),
    Column("quantite_initiale", Integer, nullable=False),
    Column("quantite_disponible", Integer, nullable=False),
    Column("seuil_critique", Integer, nullable=True),
    Column("maintenance_requise", Boolean, nullable=False, default=False),
    Column("date_creation", DateTime),
    Column("date_modification", DateTime),
)

instances_produit = Table(
    "instances_produit",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("numero_serie", String(50), unique=True, nullable=False),
    Column("id_produit", Integer, ForeignKey("produits.id"), nullable=False),
    Column("statut", Enum(model.StatutInstance), nullable=False),
    Column("etat_physique", Enum(model.EtatPhysique)),
    Column("observation", String(1000)),
    Column("date_acquisition", Date),
    Column("ajoute_par", String(255)),
    Column("date_derniere_maintenance", Date),
    Column("date_prochaine_maintenance", Date),
    Column("motif", String(255)),
)

reservations = Table(
    "reservations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("reference", String(255), unique=True),
    Column("date_debut", Date),
    Column("date_fin", Date),
)

# id_instance n'est pas une clé étrangère : le mouvement survit
# à la suppression de l'instance qu'il décrit.
mouvements_stock = Table(
    "mouvements_stock",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("id_produit", Integer, ForeignKey("produits.id")),
    Column("type_mouvement", Enum(model.TypeMouvement), nullable=False),
    Column("quantite", Integer),
    Column("quantite_avant", Integer, nullable=True),
    Column("quantite_apres", Integer, nullable=True),
    Column("motif", String(255)),
    Column("effectue_par", String(255)),
    Column("date_mouvement", DateTime),
    Column("id_reservation", Integer, nullable=True),
    Column("reference_reservation", String(255), nullable=True),
    Column("date_debut", Date, nullable=True),
    Column("date_fin", Date, nullable=True),
    Column("id_instance", Integer, nullable=True),
    Column("code_instance", String(50), nullable=True),
)


def start_mappers() -> None:
    """
    Configure le mapping entre les classes du domaine et les tables SQL.

    Utilise le classical mapping : les classes du domaine ne connaissent
    pas SQLAlchemy. C'est ici qu'on fait le pont entre les attributs
    français du domaine et les colonnes de la base de données.
    """
    if inspect(model.Produit, raiseerr=False) is not None:
        # Mapping déjà en place (bootstrap appelé plusieurs fois)
        return
    mapper_registry.map_imperatively(
        model.Reservation,
        reservations,
        properties={
            "id_reservation": reservations.c.id,
            "référence": reservations.c.reference,
            "date_début": reservations.c.date_debut,
        },
    )
    instances_mapper = mapper_registry.map_imperatively(
        model.InstanceProduit,
        instances_produit,
        properties={
            "id_instance": instances_produit.c.id,
            "numéro_série": instances_produit.c.numero_serie,
            "état_physique": instances_produit.c.etat_physique,
            "ajouté_par": instances_produit.c.ajoute_par,
            "date_dernière_maintenance": instances_produit.c.date_derniere_maintenance,
        },
    )
    produits_mapper = mapper_registry.map_imperatively(
        model.Produit,
        produits,
        properties={
            "id_produit": produits.c.id,
            "catégorie": produits.c.categorie,
            "quantité_initiale": produits.c.quantite_initiale,
            "quantité_disponible": produits.c.quantite_disponible,
            "date_création": produits.c.date_creation,
            "instances": relationship(
                instances_mapper,
                cascade="all, delete-orphan",
                order_by=instances_produit.c.id,
            ),
        },
    )
    mapper_registry.map_imperatively(
        model.MouvementStock,
        mouvements_stock,
        properties={
            "id_mouvement": mouvements_stock.c.id,
            "quantité": mouvements_stock.c.quantite,
            "quantité_avant": mouvements_stock.c.quantite_avant,
            "quantité_après": mouvements_stock.c.quantite_apres,
            "effectué_par": mouvements_stock.c.effectue_par,
            "référence_reservation": mouvements_stock.c.reference_reservation,
            "date_début": mouvements_stock.c.date_debut,
            "produit": relationship(produits_mapper),
        },
    )


@event.listens_for(model.Produit, "load")
def receive_load(produit: model.Produit, _: object) -> None:
    """Initialise la liste d'événements quand un Produit est chargé depuis la BDD."""
    produit.événements = []
