"""
Point d'entrée Flask.

L'API Flask est un thin adapter : elle convertit les requêtes HTTP
en commands, les envoie au message bus, et renvoie les vues de lecture.

L'API ne contient aucune logique métier.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider

from inventaire import config
from inventaire.domain import commands, model
from inventaire.service_layer import bootstrap, handlers
from inventaire.views import views

logging.basicConfig(level=config.get_log_level())


class JSONProvider(DefaultJSONProvider):
    """Dates au format ISO 8601 plutôt qu'au format HTTP."""

    @staticmethod
    def default(o):
        if isinstance(o, (date, datetime)):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


app = Flask(__name__)
app.json = JSONProvider(app)
bus = bootstrap.bootstrap()


# --- Erreurs ---


@app.errorhandler(handlers.ProduitIntrouvable)
@app.errorhandler(handlers.InstanceIntrouvable)
def introuvable(e: Exception):
    return jsonify({"message": str(e)}), 404


@app.errorhandler(model.ErreurStock)
@app.errorhandler(handlers.ProduitDéjàExistant)
def requête_refusée(e: Exception):
    return jsonify({"message": str(e)}), 400


@app.errorhandler(KeyError)
def champ_manquant(e: KeyError):
    return jsonify({"message": f"Champ manquant : {e.args[0]}"}), 400


@app.errorhandler(ValueError)
def valeur_invalide(e: ValueError):
    return jsonify({"message": str(e)}), 400


# --- Produits ---


@app.route("/produits", methods=["POST"])
def créer_produit_endpoint():
    """
    POST /produits
    Body JSON : { code, nom, categorie, type_produit, prix_unitaire,
                  quantite_initiale, effectue_par, seuil_critique?, description? }
    """
    data = request.json
    cmd = commands.CréerProduit(
        code=data["code"],
        nom=data["nom"],
        catégorie=model.Categorie(data["categorie"]),
        type_produit=model.TypeProduit(data["type_produit"]),
        prix_unitaire=data["prix_unitaire"],
        quantité_initiale=data["quantite_initiale"],
        effectué_par=data["effectue_par"],
        seuil_critique=data.get("seuil_critique"),
        description=data.get("description"),
    )
    id_produit = bus.handle(cmd).pop(0)
    return jsonify({"id_produit": id_produit}), 201


@app.route("/produits/<int:id_produit>", methods=["GET"])
def produit_endpoint(id_produit: int):
    vue = views.produit(id_produit, bus.uow)
    if vue is None:
        return "not found", 404
    return jsonify(vue), 200


@app.route("/produits", methods=["GET"])
def catalogue_endpoint():
    """
    GET /produits?categorie=MOBILIER&type=EN_QUANTITE
    GET /produits?etat=disponible | rupture | critique (&seuil=3)
    """
    état = request.args.get("etat")
    if état == "disponible":
        résultat = views.produits_disponibles(bus.uow)
    elif état == "rupture":
        résultat = views.produits_en_rupture(bus.uow)
    elif état == "critique":
        résultat = views.produits_stock_critique(bus.uow, request.args.get("seuil", type=int))
    elif état is None:
        catégorie = request.args.get("categorie")
        type_produit = request.args.get("type")
        résultat = views.catalogue(
            bus.uow,
            catégorie=model.Categorie(catégorie) if catégorie else None,
            type_produit=model.TypeProduit(type_produit) if type_produit else None,
        )
    else:
        return jsonify({"message": f"État inconnu : {état}"}), 400
    return jsonify(résultat), 200


@app.route("/produits/<int:id_produit>", methods=["PUT"])
def modifier_produit_endpoint(id_produit: int):
    """
    Body JSON : { nom, categorie, prix_unitaire, quantite_initiale,
                  effectue_par, seuil_critique?, description? }
    """
    data = request.json
    bus.handle(commands.ModifierProduit(
        id_produit=id_produit,
        nom=data["nom"],
        catégorie=model.Categorie(data["categorie"]),
        prix_unitaire=data["prix_unitaire"],
        quantité_initiale=data["quantite_initiale"],
        effectué_par=data["effectue_par"],
        seuil_critique=data.get("seuil_critique"),
        description=data.get("description"),
    ))
    return jsonify(views.produit(id_produit, bus.uow)), 200


@app.route("/produits/<int:id_produit>", methods=["DELETE"])
def supprimer_produit_endpoint(id_produit: int):
    bus.handle(commands.SupprimerProduit(
        id_produit=id_produit,
        effectué_par=request.args["effectue_par"],
    ))
    return "", 204


@app.route("/produits/<int:id_produit>/desactivation", methods=["POST"])
def désactiver_produit_endpoint(id_produit: int):
    bus.handle(commands.DésactiverProduit(
        id_produit=id_produit,
        effectué_par=request.json["effectue_par"],
    ))
    return jsonify(views.produit(id_produit, bus.uow)), 200


@app.route("/produits/<int:id_produit>/reactivation", methods=["POST"])
def réactiver_produit_endpoint(id_produit: int):
    """Body JSON : { quantite, effectue_par }"""
    data = request.json
    bus.handle(commands.RéactiverProduit(
        id_produit=id_produit,
        quantité=data["quantite"],
        effectué_par=data["effectue_par"],
    ))
    return jsonify(views.produit(id_produit, bus.uow)), 200


@app.route("/produits/<int:id_produit>/disponibilite", methods=["GET"])
def disponibilité_endpoint(id_produit: int):
    """GET /produits/<id>/disponibilite?quantite=20"""
    disponible = views.vérifier_disponibilité(
        id_produit, int(request.args["quantite"]), bus.uow
    )
    if disponible is None:
        return "not found", 404
    return jsonify({"disponible": disponible}), 200


@app.route("/produits/<int:id_produit>/ajustement", methods=["POST"])
def ajuster_stock_endpoint(id_produit: int):
    """Body JSON : { quantite (signée), motif, effectue_par }"""
    data = request.json
    bus.handle(commands.AjusterStock(
        id_produit=id_produit,
        quantité=data["quantite"],
        motif=data["motif"],
        effectué_par=data["effectue_par"],
    ))
    return jsonify(views.produit(id_produit, bus.uow)), 200


@app.route("/produits/<int:id_produit>/reservation", methods=["POST"])
def décrémenter_stock_endpoint(id_produit: int):
    """Body JSON : { quantite, id_reservation?, effectue_par }"""
    data = request.json
    bus.handle(commands.DécrémenterStock(
        id_produit=id_produit,
        quantité=data["quantite"],
        id_reservation=data.get("id_reservation"),
        effectué_par=data["effectue_par"],
    ))
    return jsonify(views.produit(id_produit, bus.uow)), 200


@app.route("/produits/<int:id_produit>/retour", methods=["POST"])
def incrémenter_stock_endpoint(id_produit: int):
    data = request.json
    bus.handle(commands.IncrémenterStock(
        id_produit=id_produit,
        quantité=data["quantite"],
        id_reservation=data.get("id_reservation"),
        effectué_par=data["effectue_par"],
    ))
    return jsonify(views.produit(id_produit, bus.uow)), 200


_OPÉRATIONS_AVEC_MOTIF = {
    "endommage": commands.MarquerEndommagé,
    "maintenance": commands.MettreEnMaintenance,
    "retour-maintenance": commands.RetournerDeMaintenance,
}


@app.route("/produits/<int:id_produit>/<operation>", methods=["POST"])
def opération_stock_endpoint(id_produit: int, operation: str):
    """
    POST /produits/<id>/endommage | maintenance | retour-maintenance
    Body JSON : { quantite, motif, effectue_par }
    """
    command_class = _OPÉRATIONS_AVEC_MOTIF.get(operation)
    if command_class is None:
        return "not found", 404
    data = request.json
    bus.handle(command_class(
        id_produit=id_produit,
        quantité=data["quantite"],
        motif=data["motif"],
        effectué_par=data["effectue_par"],
    ))
    return jsonify(views.produit(id_produit, bus.uow)), 200


# --- Instances ---


@app.route("/produits/<int:id_produit>/instances", methods=["POST"])
def ajouter_instance_endpoint(id_produit: int):
    """Body JSON : { numero_serie, effectue_par, etat_physique?, observation? }"""
    data = request.json
    id_instance = bus.handle(commands.AjouterInstance(
        id_produit=id_produit,
        numéro_série=data["numero_serie"],
        effectué_par=data["effectue_par"],
        état_physique=model.EtatPhysique(data.get("etat_physique", "BON_ETAT")),
        observation=data.get("observation"),
    )).pop(0)
    return jsonify({"id_instance": id_instance}), 201


@app.route("/produits/<int:id_produit>/instances/lot", methods=["POST"])
def créer_instances_en_lot_endpoint(id_produit: int):
    """Body JSON : { quantite, effectue_par }"""
    data = request.json
    ids = bus.handle(commands.CréerInstancesEnLot(
        id_produit=id_produit,
        quantité=data["quantite"],
        effectué_par=data["effectue_par"],
    )).pop(0)
    return jsonify({"ids_instances": ids}), 201


@app.route("/produits/<int:id_produit>/instances", methods=["GET"])
def instances_du_produit_endpoint(id_produit: int):
    """GET /produits/<id>/instances (?disponibles=1)"""
    disponibles = request.args.get("disponibles", "0") not in ("0", "false", "")
    return jsonify(views.instances_du_produit(id_produit, bus.uow, disponibles)), 200


@app.route("/instances", methods=["GET"])
def instances_par_statut_endpoint():
    """GET /instances?statut=EN_MAINTENANCE"""
    statut = model.StatutInstance(request.args["statut"])
    return jsonify(views.instances_par_statut(statut, bus.uow)), 200


@app.route("/instances/maintenance-requise", methods=["GET"])
def instances_maintenance_requise_endpoint():
    return jsonify(views.instances_nécessitant_maintenance(bus.uow)), 200


@app.route("/instances/<int:id_instance>", methods=["GET"])
def instance_endpoint(id_instance: int):
    vue = views.instance(id_instance, bus.uow)
    if vue is None:
        return "not found", 404
    return jsonify(vue), 200


@app.route("/instances/<int:id_instance>", methods=["DELETE"])
def supprimer_instance_endpoint(id_instance: int):
    bus.handle(commands.SupprimerInstance(
        id_instance=id_instance,
        effectué_par=request.args["effectue_par"],
    ))
    return "", 204


@app.route("/instances/<int:id_instance>/maintenance", methods=["POST"])
def envoyer_en_maintenance_endpoint(id_instance: int):
    data = request.json
    bus.handle(commands.EnvoyerInstanceEnMaintenance(
        id_instance=id_instance,
        motif=data["motif"],
        effectué_par=data["effectue_par"],
    ))
    return "OK", 200


@app.route("/instances/<int:id_instance>/retour-maintenance", methods=["POST"])
def retour_de_maintenance_endpoint(id_instance: int):
    data = request.json
    prochaine = data.get("date_prochaine_maintenance")
    bus.handle(commands.RetournerInstanceDeMaintenance(
        id_instance=id_instance,
        effectué_par=data["effectue_par"],
        date_prochaine_maintenance=date.fromisoformat(prochaine) if prochaine else None,
    ))
    return "OK", 200


@app.route("/instances/<int:id_instance>/statut", methods=["PUT"])
def changer_statut_endpoint(id_instance: int):
    data = request.json
    bus.handle(commands.ChangerStatutInstance(
        id_instance=id_instance,
        statut=model.StatutInstance(data["statut"]),
        effectué_par=data["effectue_par"],
    ))
    return "OK", 200


# --- Historique des mouvements ---


@app.route("/produits/<int:id_produit>/mouvements", methods=["GET"])
def historique_endpoint(id_produit: int):
    return jsonify(views.historique_mouvements(id_produit, bus.uow)), 200


@app.route("/produits/<int:id_produit>/statistiques", methods=["GET"])
def statistiques_endpoint(id_produit: int):
    stats = views.statistiques_produit(id_produit, bus.uow)
    if stats is None:
        return "not found", 404
    return jsonify(stats), 200


@app.route("/reservations/<int:id_reservation>/mouvements", methods=["GET"])
def mouvements_reservation_endpoint(id_reservation: int):
    return jsonify(views.mouvements_par_reservation(id_reservation, bus.uow)), 200


@app.route("/mouvements/recents", methods=["GET"])
def mouvements_récents_endpoint():
    limite = request.args.get("limite", type=int)
    return jsonify(views.mouvements_récents(bus.uow, limite)), 200


@app.route("/mouvements", methods=["GET"])
def mouvements_endpoint():
    """
    GET /mouvements?type=RESERVATION
    GET /mouvements?utilisateur=admin
    GET /mouvements?debut=2025-06-01T00:00:00&fin=2025-06-30T23:59:59
    """
    if "type" in request.args:
        résultat = views.mouvements_par_type(
            model.TypeMouvement(request.args["type"]), bus.uow
        )
    elif "utilisateur" in request.args:
        résultat = views.mouvements_par_utilisateur(request.args["utilisateur"], bus.uow)
    elif "debut" in request.args and "fin" in request.args:
        résultat = views.mouvements_par_période(
            datetime.fromisoformat(request.args["debut"]),
            datetime.fromisoformat(request.args["fin"]),
            bus.uow,
        )
    else:
        return jsonify({"message": "Filtre attendu : type, utilisateur ou debut/fin"}), 400
    return jsonify(résultat), 200
