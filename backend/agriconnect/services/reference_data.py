# Overview: Static enumerations served to the client (communes of Lubumbashi, product categories).

COMMUNES = (
    "Annexe",
    "Lubumbashi",
    "Kenya",
    "Katuba",
    "Kamalondo",
    "Kampemba",
    "Ruashi",
)

CATEGORIES = (
    "Maraîchage",
    "Céréales",
    "Légumineuses",
    "Tubercules",
    "Élevage",
    "Fruits",
)
