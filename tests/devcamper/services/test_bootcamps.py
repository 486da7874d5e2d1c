import pytest

from devcamper.services.bootcamps import distance_miles, slugify


@pytest.mark.parametrize(
    ('name', 'slug'),
    [
        ('Devworks Bootcamp', 'devworks-bootcamp'),
        ('  ModernTech  Bootcamp! ', 'moderntech-bootcamp'),
        ('Codemasters & Co.', 'codemasters-co'),
        ('Café Code', 'cafe-code'),
    ],
)
def test_slugify(name: str, slug: str) -> None:
    assert slugify(name) == slug


def test_distance_miles_between_boston_and_new_york() -> None:
    assert distance_miles(42.3601, -71.0589, 40.7128, -74.0060) == pytest.approx(190, abs=5)
    assert distance_miles(42.3601, -71.0589, 42.3601, -71.0589) == 0
