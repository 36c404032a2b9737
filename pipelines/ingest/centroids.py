"""Static location tables: federation codes, region centroids, and chess-hub cities."""

from __future__ import annotations

from app.models.tournament import Coordinates

# FIDE federation code -> ISO 3166-1 alpha-2.
FIDE_TO_ISO: dict[str, str] = {
    # Europe
    "GER": "DE", "FRA": "FR", "ESP": "ES", "ENG": "GB", "ITA": "IT",
    "POL": "PL", "NED": "NL", "RUS": "RU", "UKR": "UA", "AUT": "AT",
    "SUI": "CH", "CZE": "CZ", "HUN": "HU", "SWE": "SE", "NOR": "NO",
    "DEN": "DK", "FIN": "FI", "BEL": "BE", "POR": "PT", "GRE": "GR",
    "TUR": "TR", "SRB": "RS", "CRO": "HR", "SLO": "SI", "SVK": "SK",
    "ROU": "RO", "BUL": "BG", "GEO": "GE", "ARM": "AM", "AZE": "AZ",
    "LTU": "LT", "LAT": "LV", "EST": "EE", "BLR": "BY", "MDA": "MD",
    "MKD": "MK", "BIH": "BA", "MNE": "ME", "ALB": "AL", "ISL": "IS",
    "IRL": "IE", "SCO": "GB", "WLS": "GB",
    # Americas
    "USA": "US", "CAN": "CA", "MEX": "MX", "ARG": "AR", "BRA": "BR",
    "COL": "CO", "PER": "PE", "CHI": "CL", "VEN": "VE", "ECU": "EC",
    "URU": "UY", "PAR": "PY", "BOL": "BO", "CUB": "CU", "PUR": "PR",
    "CRC": "CR", "PAN": "PA", "DOM": "DO",
    # Asia
    "IND": "IN", "CHN": "CN", "JPN": "JP", "KOR": "KR", "PHI": "PH",
    "INA": "ID", "VIE": "VN", "MAS": "MY", "SGP": "SG", "THA": "TH",
    "MYA": "MM", "BAN": "BD", "SRI": "LK", "PAK": "PK", "IRI": "IR",
    "IRQ": "IQ", "UAE": "AE", "KSA": "SA", "QAT": "QA", "KUW": "KW",
    "BRN": "BH", "JOR": "JO", "LBN": "LB", "SYR": "SY", "UZB": "UZ",
    "KAZ": "KZ", "MGL": "MN",
    # Africa
    "RSA": "ZA", "EGY": "EG", "MAR": "MA", "TUN": "TN", "ALG": "DZ",
    "NGR": "NG", "KEN": "KE", "UGA": "UG", "ZIM": "ZW", "ZAM": "ZM",
    "BOT": "BW", "NAM": "NA", "GHA": "GH", "CIV": "CI", "SEN": "SN",
    "CMR": "CM", "ANG": "AO", "ETH": "ET",
    # Oceania
    "AUS": "AU", "NZL": "NZ", "FIJ": "FJ",
    # Middle East
    "ISR": "IL",
}  # fmt: skip

# ISO alpha-2 -> preferred federation code for crawling (first-wins on shared ISO codes).
ISO_TO_FIDE: dict[str, str] = {}
for _fide, _iso in FIDE_TO_ISO.items():
    ISO_TO_FIDE.setdefault(_iso, _fide)

_COUNTRY_POINTS: dict[str, tuple[float, float]] = {
    "AE": (23.4241, 53.8478), "AL": (41.1533, 20.1683), "AM": (40.0691, 45.0382),
    "AO": (-11.2027, 17.8739), "AR": (-38.4161, -63.6167), "AT": (47.5162, 14.5501),
    "AU": (-25.2744, 133.7751), "AZ": (40.1431, 47.5769), "BA": (43.9159, 17.6791),
    "BD": (23.6850, 90.3563), "BE": (50.5039, 4.4699), "BG": (42.7339, 25.4858),
    "BH": (26.0667, 50.5577), "BO": (-16.2902, -63.5887), "BR": (-14.2350, -51.9253),
    "BW": (-22.3285, 24.6849), "BY": (53.7098, 27.9534), "CA": (56.1304, -106.3468),
    "CH": (46.8182, 8.2275), "CI": (7.5400, -5.5471), "CL": (-35.6751, -71.5430),
    "CM": (7.3697, 12.3547), "CN": (35.8617, 104.1954), "CO": (4.5709, -74.2973),
    "CR": (9.7489, -83.7534), "CU": (21.5218, -77.7812), "CZ": (49.8175, 15.4730),
    "DE": (51.1657, 10.4515), "DK": (56.2639, 9.5018), "DO": (18.7357, -70.1627),
    "DZ": (28.0339, 1.6596), "EC": (-1.8312, -78.1834), "EE": (58.5953, 25.0136),
    "EG": (26.8206, 30.8025), "ES": (40.4637, -3.7492), "ET": (9.1450, 40.4897),
    "FI": (61.9241, 25.7482), "FJ": (-17.7134, 178.0650), "FR": (46.2276, 2.2137),
    "GB": (55.3781, -3.4360), "GE": (42.3154, 43.3569), "GH": (7.9465, -1.0232),
    "GR": (39.0742, 21.8243), "HR": (45.1000, 15.2000), "HU": (47.1625, 19.5033),
    "ID": (-0.7893, 113.9213), "IE": (53.4129, -8.2439), "IL": (31.0461, 34.8516),
    "IN": (20.5937, 78.9629), "IQ": (33.2232, 43.6793), "IR": (32.4279, 53.6880),
    "IS": (64.9631, -19.0208), "IT": (41.8719, 12.5674), "JO": (30.5852, 36.2384),
    "JP": (36.2048, 138.2529), "KE": (-0.0236, 37.9062), "KR": (35.9078, 127.7669),
    "KW": (29.3117, 47.4818), "KZ": (48.0196, 66.9237), "LB": (33.8547, 35.8623),
    "LK": (7.8731, 80.7718), "LT": (55.1694, 23.8813), "LV": (56.8796, 24.6032),
    "MA": (31.7917, -7.0926), "MD": (47.4116, 28.3699), "ME": (42.7087, 19.3744),
    "MK": (41.6086, 21.7453), "MM": (21.9162, 95.9560), "MN": (46.8625, 103.8467),
    "MX": (23.6345, -102.5528), "MY": (4.2105, 101.9758), "NA": (-22.9576, 18.4904),
    "NG": (9.0820, 8.6753), "NL": (52.1326, 5.2913), "NO": (60.4720, 8.4689),
    "NZ": (-40.9006, 174.8860), "PA": (8.5380, -80.7821), "PE": (-9.1900, -75.0152),
    "PH": (12.8797, 121.7740), "PK": (30.3753, 69.3451), "PL": (51.9194, 19.1451),
    "PR": (18.2208, -66.5901), "PT": (39.3999, -8.2245), "PY": (-23.4425, -58.4438),
    "QA": (25.3548, 51.1839), "RO": (45.9432, 24.9668), "RS": (44.0165, 21.0059),
    "RU": (61.5240, 105.3188), "SA": (23.8859, 45.0792), "SE": (60.1282, 18.6435),
    "SG": (1.3521, 103.8198), "SI": (46.1512, 14.9955), "SK": (48.6690, 19.6990),
    "SN": (14.4974, -14.4524), "SY": (34.8021, 38.9968), "TH": (15.8700, 100.9925),
    "TN": (33.8869, 9.5375), "TR": (38.9637, 35.2433), "UA": (48.3794, 31.1656),
    "UG": (1.3733, 32.2903), "US": (37.0902, -95.7129), "UY": (-32.5228, -55.7658),
    "UZ": (41.3775, 64.5853), "VE": (6.4238, -66.5897), "VN": (14.0583, 108.2772),
    "ZA": (-30.5595, 22.9375), "ZM": (-13.1339, 27.8493), "ZW": (-19.0154, 29.1549),
}  # fmt: skip

_STATE_POINTS: dict[str, tuple[float, float]] = {
    # India
    "andhra pradesh|IN": (15.9129, 79.74), "arunachal pradesh|IN": (28.218, 94.7278),
    "assam|IN": (26.2006, 92.9376), "bihar|IN": (25.0961, 85.3131),
    "chhattisgarh|IN": (21.2787, 81.8661), "goa|IN": (15.2993, 74.124),
    "gujarat|IN": (23.0225, 72.5714), "haryana|IN": (29.0588, 76.0856),
    "himachal pradesh|IN": (31.1048, 77.1734), "jharkhand|IN": (23.6102, 85.2799),
    "karnataka|IN": (12.9716, 77.5946), "kerala|IN": (10.8505, 76.2711),
    "madhya pradesh|IN": (22.9734, 78.6569), "maharashtra|IN": (19.076, 72.8777),
    "manipur|IN": (24.6637, 93.9063), "meghalaya|IN": (25.467, 91.3662),
    "mizoram|IN": (23.1645, 92.9376), "nagaland|IN": (26.1584, 94.5624),
    "odisha|IN": (20.9517, 85.0985), "punjab|IN": (31.1471, 75.3412),
    "rajasthan|IN": (26.9124, 75.7873), "sikkim|IN": (27.533, 88.5122),
    "tamil nadu|IN": (13.0827, 80.2707), "telangana|IN": (18.1124, 79.0193),
    "tripura|IN": (23.9408, 91.9882), "uttar pradesh|IN": (26.8467, 80.9462),
    "uttarakhand|IN": (30.0668, 79.0193), "west bengal|IN": (22.5726, 88.3639),
    "delhi|IN": (28.6139, 77.209), "jammu and kashmir|IN": (33.7782, 76.5762),
    "ladakh|IN": (34.1526, 77.5771), "puducherry|IN": (11.9416, 79.8083),
    "chandigarh|IN": (30.7333, 76.7794), "andaman and nicobar islands|IN": (11.7401, 92.6586),
    "dadra and nagar haveli and daman and diu|IN": (20.4283, 72.8397),
    "lakshadweep|IN": (8.2869, 73.0609),
    # United States (postal abbreviations)
    "al|US": (32.806671, -86.791130), "ak|US": (61.370716, -152.404419),
    "az|US": (33.729759, -111.431221), "ar|US": (34.969704, -92.373123),
    "ca|US": (36.116203, -119.681564), "co|US": (39.059811, -105.311104),
    "ct|US": (41.597782, -72.755371), "de|US": (39.318523, -75.507141),
    "fl|US": (27.766279, -81.686783), "ga|US": (33.040619, -83.643074),
    "hi|US": (21.094318, -157.498337), "id|US": (44.240459, -114.478828),
    "il|US": (40.349457, -88.986137), "in|US": (39.849426, -86.258278),
    "ia|US": (42.011539, -93.210526), "ks|US": (38.526600, -96.726486),
    "ky|US": (37.668140, -84.670067), "la|US": (31.169546, -91.867805),
    "me|US": (44.693947, -69.381927), "md|US": (39.063946, -76.802101),
    "ma|US": (42.230171, -71.530106), "mi|US": (43.326618, -84.536095),
    "mn|US": (45.694454, -93.900192), "ms|US": (32.741646, -89.678696),
    "mo|US": (38.456085, -92.288368), "mt|US": (46.921925, -110.454353),
    "ne|US": (41.125370, -98.268082), "nv|US": (38.313515, -117.055374),
    "nh|US": (43.452492, -71.563896), "nj|US": (40.298904, -74.521011),
    "nm|US": (34.840515, -106.248482), "ny|US": (42.165726, -74.948051),
    "nc|US": (35.630066, -79.806419), "nd|US": (47.528912, -99.784012),
    "oh|US": (40.388783, -82.764915), "ok|US": (35.565342, -96.928917),
    "or|US": (44.572021, -122.070938), "pa|US": (40.590752, -77.209755),
    "ri|US": (41.680893, -71.511780), "sc|US": (33.856892, -80.945007),
    "sd|US": (44.299782, -99.438828), "tn|US": (35.747845, -86.692345),
    "tx|US": (31.054487, -97.563461), "ut|US": (40.150032, -111.862434),
    "vt|US": (44.045876, -72.710686), "va|US": (37.769337, -78.169968),
    "wa|US": (47.400902, -121.490494), "wv|US": (38.491226, -80.954453),
    "wi|US": (44.268543, -89.616508), "wy|US": (42.755966, -107.302490),
}  # fmt: skip

# Cities that host a large share of listed tournaments.
_CHESS_HUB_POINTS: dict[str, tuple[float, float]] = {
    "paris|FR": (48.8566, 2.3522), "berlin|DE": (52.5200, 13.4050),
    "hamburg|DE": (53.5511, 9.9937), "munich|DE": (48.1351, 11.5820),
    "madrid|ES": (40.4168, -3.7038), "barcelona|ES": (41.3874, 2.1686),
    "london|GB": (51.5072, -0.1276), "amsterdam|NL": (52.3676, 4.9041),
    "wijk aan zee|NL": (52.4936, 4.5953), "warsaw|PL": (52.2297, 21.0122),
    "krakow|PL": (50.0647, 19.9450), "moscow|RU": (55.7558, 37.6173),
    "saint petersburg|RU": (59.9311, 30.3609), "kyiv|UA": (50.4501, 30.5234),
    "prague|CZ": (50.0755, 14.4378), "budapest|HU": (47.4979, 19.0402),
    "vienna|AT": (48.2082, 16.3738), "zurich|CH": (47.3769, 8.5417),
    "rome|IT": (41.9028, 12.4964), "milan|IT": (45.4642, 9.1900),
    "belgrade|RS": (44.7866, 20.4489), "athens|GR": (37.9838, 23.7275),
    "istanbul|TR": (41.0082, 28.9784), "tbilisi|GE": (41.7151, 44.8271),
    "yerevan|AM": (40.1872, 44.5152), "baku|AZ": (40.4093, 49.8671),
    "chennai|IN": (13.0827, 80.2707), "mumbai|IN": (19.0760, 72.8777),
    "new delhi|IN": (28.6139, 77.2090), "delhi|IN": (28.7041, 77.1025),
    "kolkata|IN": (22.5726, 88.3639), "bengaluru|IN": (12.9716, 77.5946),
    "bangalore|IN": (12.9716, 77.5946), "hyderabad|IN": (17.3850, 78.4867),
    "pune|IN": (18.5204, 73.8567), "new york|US": (40.7128, -74.0060),
    "saint louis|US": (38.6270, -90.1994), "st. louis|US": (38.6270, -90.1994),
    "philadelphia|US": (39.9526, -75.1652), "las vegas|US": (36.1699, -115.1398),
    "beijing|CN": (39.9042, 116.4074), "shanghai|CN": (31.2304, 121.4737),
    "buenos aires|AR": (-34.6037, -58.3816), "sao paulo|BR": (-23.5558, -46.6396),
    "mexico city|MX": (19.4326, -99.1332), "toronto|CA": (43.6532, -79.3832),
    "sydney|AU": (-33.8688, 151.2093), "melbourne|AU": (-37.8136, 144.9631),
    "tashkent|UZ": (41.2995, 69.2401), "almaty|KZ": (43.2220, 76.8512),
}  # fmt: skip


def _as_coordinates(points: dict[str, tuple[float, float]]) -> dict[str, Coordinates]:
    return {key: Coordinates(lat, lng) for key, (lat, lng) in points.items()}


COUNTRY_CENTROIDS: dict[str, Coordinates] = _as_coordinates(_COUNTRY_POINTS)
STATE_CENTROIDS: dict[str, Coordinates] = _as_coordinates(_STATE_POINTS)
CHESS_HUB_CITIES: dict[str, Coordinates] = _as_coordinates(_CHESS_HUB_POINTS)
