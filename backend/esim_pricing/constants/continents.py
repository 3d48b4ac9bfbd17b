from __future__ import annotations

# Continent slugs used to build auto-match coupon codes ("europe10", "asia7").
# Keys are ISO-3166 alpha-2 codes.

COUNTRY_CONTINENTS: dict[str, str] = {
    # Europe
    "AD": "europe", "AL": "europe", "AT": "europe", "BA": "europe", "BE": "europe",
    "BG": "europe", "BY": "europe", "CH": "europe", "CY": "europe", "CZ": "europe",
    "DE": "europe", "DK": "europe", "EE": "europe", "ES": "europe", "FI": "europe",
    "FO": "europe", "FR": "europe", "GB": "europe", "GI": "europe", "GR": "europe",
    "HR": "europe", "HU": "europe", "IE": "europe", "IS": "europe", "IT": "europe",
    "LI": "europe", "LT": "europe", "LU": "europe", "LV": "europe", "MC": "europe",
    "MD": "europe", "ME": "europe", "MK": "europe", "MT": "europe", "NL": "europe",
    "NO": "europe", "PL": "europe", "PT": "europe", "RO": "europe", "RS": "europe",
    "SE": "europe", "SI": "europe", "SK": "europe", "SM": "europe", "UA": "europe",
    "VA": "europe", "XK": "europe",
    # Asia (incl. Middle East per ISO continent grouping)
    "AE": "asia", "AF": "asia", "AM": "asia", "AZ": "asia", "BD": "asia",
    "BH": "asia", "BN": "asia", "BT": "asia", "CN": "asia", "GE": "asia",
    "HK": "asia", "ID": "asia", "IL": "asia", "IN": "asia", "IQ": "asia",
    "JO": "asia", "JP": "asia", "KG": "asia", "KH": "asia", "KR": "asia",
    "KW": "asia", "KZ": "asia", "LA": "asia", "LB": "asia", "LK": "asia",
    "MN": "asia", "MO": "asia", "MV": "asia", "MY": "asia", "NP": "asia",
    "OM": "asia", "PH": "asia", "PK": "asia", "PS": "asia", "QA": "asia",
    "SA": "asia", "SG": "asia", "TH": "asia", "TJ": "asia", "TM": "asia",
    "TR": "asia", "TW": "asia", "UZ": "asia", "VN": "asia", "YE": "asia",
    # Africa
    "AO": "africa", "BF": "africa", "BJ": "africa", "BW": "africa", "CD": "africa",
    "CI": "africa", "CM": "africa", "CV": "africa", "DZ": "africa", "EG": "africa",
    "ET": "africa", "GA": "africa", "GH": "africa", "GM": "africa", "GN": "africa",
    "KE": "africa", "LR": "africa", "LS": "africa", "MA": "africa", "MG": "africa",
    "ML": "africa", "MR": "africa", "MU": "africa", "MW": "africa", "MZ": "africa",
    "NA": "africa", "NE": "africa", "NG": "africa", "RW": "africa", "SC": "africa",
    "SD": "africa", "SL": "africa", "SN": "africa", "SZ": "africa", "TD": "africa",
    "TG": "africa", "TN": "africa", "TZ": "africa", "UG": "africa", "ZA": "africa",
    "ZM": "africa", "ZW": "africa",
    # North America (incl. Central America and the Caribbean)
    "AG": "northamerica", "BB": "northamerica", "BS": "northamerica", "BZ": "northamerica",
    "CA": "northamerica", "CR": "northamerica", "CU": "northamerica", "DM": "northamerica",
    "DO": "northamerica", "GD": "northamerica", "GT": "northamerica", "HN": "northamerica",
    "HT": "northamerica", "JM": "northamerica", "KN": "northamerica", "LC": "northamerica",
    "MX": "northamerica", "NI": "northamerica", "PA": "northamerica", "PR": "northamerica",
    "SV": "northamerica", "TT": "northamerica", "US": "northamerica", "VC": "northamerica",
    # South America
    "AR": "southamerica", "BO": "southamerica", "BR": "southamerica", "CL": "southamerica",
    "CO": "southamerica", "EC": "southamerica", "GY": "southamerica", "PE": "southamerica",
    "PY": "southamerica", "SR": "southamerica", "UY": "southamerica", "VE": "southamerica",
    # Oceania
    "AU": "oceania", "FJ": "oceania", "NC": "oceania", "NZ": "oceania", "PF": "oceania",
    "PG": "oceania", "SB": "oceania", "TO": "oceania", "VU": "oceania", "WS": "oceania",
}

# Checked in order against the lower-cased bundle display name.
BUNDLE_NAME_CONTINENTS: tuple[tuple[str, str], ...] = (
    ("europe", "europe"),
    ("eu+", "europe"),
    ("asia", "asia"),
    ("middle east", "middleeast"),
    ("north america", "northamerica"),
    ("south america", "southamerica"),
    ("africa", "africa"),
)


def continent_for_country(iso: str | None) -> str | None:
    if not iso:
        return None
    return COUNTRY_CONTINENTS.get(iso.strip().upper())


def continent_for_bundle_name(name: str | None) -> str | None:
    if not name:
        return None
    lowered = name.lower()
    for needle, continent in BUNDLE_NAME_CONTINENTS:
        if needle in lowered:
            return continent
    return None
