from zerpha.services.domains import derive_niche_key, normalize_company_name, normalize_domain


def test_normalize_domain_strips_scheme_www_and_path():
    assert normalize_domain("https://www.Acme.com/pricing?x=1") == "acme.com"
    assert normalize_domain("http://acme.com") == "acme.com"
    assert normalize_domain("HTTPS://WWW.ACME.COM") == "acme.com"


def test_normalize_domain_accepts_bare_hosts():
    assert normalize_domain("www.acme.com") == "acme.com"
    assert normalize_domain("acme.io/about") == "acme.io"


def test_normalize_domain_keeps_other_subdomains():
    assert normalize_domain("https://app.acme.com") == "app.acme.com"


def test_normalize_domain_never_raises_on_garbage():
    assert normalize_domain("") == ""
    assert normalize_domain(None) == ""
    assert isinstance(normalize_domain("http://[::1"), str)
    assert isinstance(normalize_domain("not a url at all"), str)


def test_normalize_company_name_drops_trailing_legal_suffixes():
    assert normalize_company_name("Acme Inc.") == "acme"
    assert normalize_company_name("ACME") == "acme"
    assert normalize_company_name("Acme Co. Ltd") == "acme"
    assert normalize_company_name("Acme, LLC") == "acme"


def test_normalize_company_name_keeps_inner_words_and_bare_suffix():
    assert normalize_company_name("Inc Software") == "inc software"
    assert normalize_company_name("Co") == "co"
    assert normalize_company_name("Dental Flow  Labs") == "dental flow labs"


def test_derive_niche_key_collapses_case_punctuation_and_spacing():
    assert derive_niche_key("  Dental Practice   Software! ") == "dental_practice_software"
    assert derive_niche_key("dental practice software") == derive_niche_key("Dental practice, software")


def test_derive_niche_key_is_bounded():
    assert len(derive_niche_key("a" * 500)) == 100
    assert derive_niche_key("") == ""


def test_normalize_company_name_removes_inner_punctuation():
    assert normalize_company_name("Hub-Spot") == normalize_company_name("HubSpot") == "hubspot"
    assert normalize_company_name("Monday.com Ltd.") == normalize_company_name("mondaycom") == "mondaycom"
