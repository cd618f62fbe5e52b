from fireworks_finder.services import gazetteer


def test_resolve_known_city_returns_its_coordinates() -> None:
    coords = gazetteer.resolve("Duluth")

    assert coords.lat == 46.7867
    assert coords.lng == -92.1005


def test_resolve_unknown_city_falls_back_to_minneapolis() -> None:
    coords = gazetteer.resolve("Atlantis")

    assert coords is not None
    assert coords == gazetteer.DEFAULT_COORDINATES
    assert (coords.lat, coords.lng) == (44.9778, -93.2650)


def test_resolve_is_case_sensitive() -> None:
    assert gazetteer.resolve("duluth") == gazetteer.DEFAULT_COORDINATES
    assert gazetteer.resolve("") == gazetteer.DEFAULT_COORDINATES


def test_canonicalize_maps_variants_to_canonical_key() -> None:
    assert gazetteer.canonicalize("Saint Paul") == "St. Paul"
    assert gazetteer.canonicalize("St Paul") == "St. Paul"
    assert gazetteer.canonicalize("St. Louis Park") == "St Louis Park"
    assert gazetteer.canonicalize("Edina") == "Edina"
    assert gazetteer.canonicalize("Gotham") == "Gotham"


def test_vocabulary_keeps_declaration_order_with_variants() -> None:
    vocabulary = gazetteer.vocabulary()

    assert vocabulary[0] == "Minneapolis"
    assert vocabulary.index("St. Paul") < vocabulary.index("Saint Paul")
    assert set(gazetteer.names()) <= set(vocabulary)


def test_distance_miles_between_downtowns() -> None:
    mpls = gazetteer.resolve("Minneapolis")
    stp = gazetteer.resolve("St. Paul")

    assert gazetteer.distance_miles(mpls.lat, mpls.lng, mpls.lat, mpls.lng) == 0
    assert 8 < gazetteer.distance_miles(mpls.lat, mpls.lng, stp.lat, stp.lng) < 10
