"""Tests for the click entry points that need no network."""

from click.testing import CliRunner

from stockwatch.cli import main


def test_sensor_summary():
    result = CliRunner().invoke(main, ["sensor", "4,i,fp1,fp2$payload$11,7,32$$$suffix"])
    assert result.exit_code == 0
    assert "11, 7, 32" in result.output


def test_lookup_rejects_non_product_url():
    result = CliRunner().invoke(main, ["lookup", "https://www.zalando-prive.fr/cart"])
    assert result.exit_code == 1
    assert "Not a product URL" in result.output
