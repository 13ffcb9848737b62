"""
Synonym tables for semantic targets.

The shop is served in German, French, Italian and English; labels also
drift between site revisions. Step logic refers to targets by key and never
hard-codes literal strings; this table is the only place UI wording lives.
Matching is accent- and case-insensitive (see engine.dom.text).
"""

from __future__ import annotations

SYNONYMS: dict[str, tuple[str, ...]] = {
    "cookie_accept": (
        "Alle akzeptieren",
        "Akzeptieren",
        "Einverstanden",
        "Accept all",
        "Accept",
        "I agree",
        "Tout accepter",
        "Accepter",
        "Accetta tutti",
        "Accetta",
    ),
    "category.motor_vehicle": (
        "Motorfahrzeug",
        "Motor vehicle",
        "Véhicule à moteur",
        "Veicolo a motore",
        "Car or camper",
    ),
    "category.trailer": (
        "Anhänger",
        "Trailer",
        "Remorque",
        "Rimorchio",
        "Caravan & trailer",
    ),
    "country_opener": (
        "Zulassungsland",
        "Land",
        "Country of registration",
        "Country",
        "Pays d'immatriculation",
        "Pays",
        "Paese d'immatricolazione",
        "Paese",
    ),
    "plate": (
        "Kontrollschild",
        "Kennzeichen",
        "Licence plate",
        "License plate",
        "Registration number",
        "Plaque",
        "Immatriculation",
        "Targa",
    ),
    "plate_confirmation": (
        "Kontrollschild bestätigen",
        "Kontrollschild wiederholen",
        "Confirm licence plate",
        "Confirm license plate",
        "Repeat licence plate",
        "Confirmer la plaque",
        "Répéter la plaque",
        "Conferma targa",
        "Ripetere la targa",
    ),
    "start_date": (
        "Gültig ab",
        "Startdatum",
        "Start date",
        "Valid from",
        "Valable dès",
        "Date de début",
        "Valido dal",
        "Data di inizio",
    ),
    "email": (
        "E-Mail",
        "Email",
        "Courriel",
        "Adresse e-mail",
        "Indirizzo e-mail",
    ),
    "add_to_cart": (
        "In den Warenkorb",
        "Zum Warenkorb hinzufügen",
        "Add to cart",
        "Add to basket",
        "Ajouter au panier",
        "Aggiungi al carrello",
    ),
    "checkout": (
        "Zur Kasse",
        "Weiter zur Kasse",
        "Bezahlen",
        "Checkout",
        "Proceed to checkout",
        "Passer à la caisse",
        "Procéder au paiement",
        "Alla cassa",
        "Procedi al pagamento",
    ),
    "payment.creditcard": (
        "Kreditkarte",
        "Credit card",
        "Creditcard",
        "Carte de crédit",
        "Carta di credito",
        "Visa",
        "Mastercard",
    ),
    "payment.paypal": ("PayPal",),
    "payment.twint": ("TWINT",),
    "payment.postfinance": ("PostFinance",),
    "terms": (
        "AGB",
        "Allgemeinen Geschäftsbedingungen",
        "Terms and conditions",
        "I accept the terms",
        "Conditions générales",
        "Condizioni generali",
    ),
    "pay": (
        "Jetzt bezahlen",
        "Zahlungspflichtig bestellen",
        "Bezahlen",
        "Pay now",
        "Pay",
        "Payer maintenant",
        "Payer",
        "Paga ora",
        "Paga",
    ),
}

# Words that mark a plate field as the confirmation copy
CONFIRMATION_WORDS: tuple[str, ...] = (
    "confirm",
    "repeat",
    "bestatig",
    "wiederhol",
    "confirmer",
    "repeter",
    "conferma",
    "ripet",
)

COUNTRY_NAMES: dict[str, tuple[str, ...]] = {
    "GB": ("Vereinigtes Königreich", "United Kingdom", "Royaume-Uni", "Regno Unito", "Grossbritannien"),
    "CH": ("Schweiz", "Switzerland", "Suisse", "Svizzera"),
    "DE": ("Deutschland", "Germany", "Allemagne", "Germania"),
    "AT": ("Österreich", "Austria", "Autriche"),
    "FR": ("Frankreich", "France", "Francia"),
    "IT": ("Italien", "Italy", "Italie", "Italia"),
    "NL": ("Niederlande", "Netherlands", "Pays-Bas", "Paesi Bassi"),
    "BE": ("Belgien", "Belgium", "Belgique", "Belgio"),
    "LI": ("Liechtenstein",),
}


def synonyms_for(key: str) -> tuple[str, ...]:
    """Synonyms registered for a target key; empty tuple when unknown."""
    return SYNONYMS.get(key, ())


def country_synonyms(code: str) -> tuple[str, ...]:
    """Country display names in every shop language, falling back to the code itself."""
    code = (code or "").upper()
    return COUNTRY_NAMES.get(code, (code,))
