from datetime import date, datetime

import pytest

from tradeops.core.normalizer import coerce_date, normalize_rows, parse_numeric
from tradeops.parsing.mapper import MappingError
from tradeops.parsing.schema import EQUITY, FX

TODAY = date(2024, 3, 15)


def equity_row(tid='EQ-1', td='2024-01-01', qty=100, price=150, commission='$45.50'):
    return {
        'Trade ID': tid,
        'Symbol': 'AAPL',
        'Quantity': qty,
        'Price': price,
        'Trade Date': td,
        'Commission': commission,
    }


EQUITY_MAPPING = {
    'trade_id': 'Trade ID',
    'symbol': 'Symbol',
    'quantity': 'Quantity',
    'price': 'Price',
    'trade_date': 'Trade Date',
    'commission': 'Commission',
}


def test_parse_numeric():
    assert parse_numeric('$1,250.50') == 1250.50
    assert parse_numeric('abc') == 0
    assert parse_numeric(42) == 42
    assert parse_numeric('12.5 USD') == 12.5
    assert parse_numeric('-3') == -3
    assert parse_numeric(None) == 0
    assert parse_numeric(float('nan')) == 0


def test_coerce_date_variants():
    assert coerce_date(45292, TODAY) == '2024-01-01'
    assert coerce_date(datetime(2024, 2, 3, 10, 30), TODAY) == '2024-02-03'
    assert coerce_date('2024/02/03', TODAY) == '2024-02-03'
    assert coerce_date('TBD', TODAY) == 'TBD'
    assert coerce_date(1e20, TODAY) == '2024-03-15'
    assert coerce_date(object(), TODAY) == '2024-03-15'


def test_normalize_is_total_and_ordered():
    rows = [equity_row('A'), equity_row('B'), equity_row('C')]
    records = normalize_rows(rows, EQUITY_MAPPING, EQUITY, today=TODAY)
    assert [r.trade_id for r in records] == ['A', 'B', 'C']
    for r in records:
        assert r.data_source == EQUITY
        assert r.trade_date and r.settlement_date


def test_numeric_and_date_coercion():
    records = normalize_rows([equity_row(td=45292)], EQUITY_MAPPING, EQUITY, today=TODAY)
    rec = records[0]
    assert rec.commission == 45.5
    assert rec.quantity == 100.0
    assert rec.trade_date == '2024-01-01'
    # T+2 from the trade date
    assert rec.settlement_date == '2024-01-03'


def test_missing_id_and_date_are_synthesized():
    rows = [equity_row(), equity_row(tid=None, td='  ')]
    records = normalize_rows(rows, EQUITY_MAPPING, EQUITY, today=TODAY)
    assert records[1].trade_id == 'TRADE-000002'
    assert records[1].trade_date == '2024-03-15'
    assert records[1].settlement_date == '2024-03-17'


def test_fx_settlement_uses_value_date():
    rows = [
        {'TradeID': 'FX-1', 'TradeDate': '2024-05-03', 'ValueDate': '2024-05-07'},
        {'TradeID': 'FX-2', 'TradeDate': '2024-05-03', 'ValueDate': None},
    ]
    mapping = {'trade_id': 'TradeID', 'trade_date': 'TradeDate', 'value_date': 'ValueDate'}
    records = normalize_rows(rows, mapping, today=TODAY)
    assert records[0].data_source == FX
    assert records[0].settlement_date == '2024-05-07'
    assert records[1].settlement_date == '2024-05-03'


def test_bad_row_becomes_stub():
    rows = [equity_row('A'), None, equity_row('C')]
    records = normalize_rows(rows, EQUITY_MAPPING, EQUITY, today=TODAY)
    assert len(records) == 3
    assert records[1].trade_id == 'ERROR-2'
    assert records[1].trade_date == '2024-03-15'
    assert records[1].settlement_date == '2024-03-15'
    assert records[2].trade_id == 'C'


def test_unknown_header_in_mapping_raises():
    mapping = dict(EQUITY_MAPPING, trade_value='Trade Value')
    with pytest.raises(MappingError):
        normalize_rows([equity_row()], mapping, EQUITY, today=TODAY)


def test_empty_rows():
    assert normalize_rows([], EQUITY_MAPPING, today=TODAY) == []


def test_unmapped_columns_carried_as_extras():
    row = dict(equity_row(), Desk='Delta One', Empty=None)
    plain = normalize_rows([row], EQUITY_MAPPING, EQUITY, today=TODAY)[0]
    assert plain.extras == {}

    carried = normalize_rows([row], EQUITY_MAPPING, EQUITY, today=TODAY, carry_unmapped=True)[0]
    assert carried.extras == {'Desk': 'Delta One'}
    assert carried.to_dict()['Desk'] == 'Delta One'
    assert carried.get('Desk') == 'Delta One'


def test_bad_first_row_becomes_stub():
    records = normalize_rows([None, {'Trade ID': 'B'}], {'trade_id': 'Trade ID'}, EQUITY, today=TODAY)
    assert [r.trade_id for r in records] == ['ERROR-1', 'B']

    detected = normalize_rows([None, {'TradeID': 'FX-1'}], {'trade_id': 'TradeID'}, today=TODAY)
    assert [r.data_source for r in detected] == [FX, FX]
