from tradeops.parsing.classifier import classify, resolve_data_type
from tradeops.parsing.mapper import (
    EXACT,
    FLEXIBLE,
    MappingError,
    MappingSession,
    build_exact_mapping,
    build_flexible_mapping,
    build_mapping,
    mapping_status,
)
from tradeops.parsing.mapping import normalize_header
from tradeops.parsing.schema import EQUITY, EQUITY_FIELDS, FX, FX_FIELDS, get_field_set


def row_with(headers):
    return {h: 'x' for h in headers}


def test_classify_fx_headers():
    headers = ['TradeID', 'CurrencyPair', 'BuySell', 'NotionalAmount', 'FXRate']
    assert classify([row_with(headers)]) == FX


def test_classify_equity_headers():
    headers = ['Trade ID', 'Symbol', 'Quantity', 'Price']
    assert classify([row_with(headers)]) == EQUITY


def test_classify_empty_defaults_to_equity():
    assert classify([]) == EQUITY


def test_declared_type_overrides_detection():
    rows = [row_with(['Trade ID', 'Symbol'])]
    assert resolve_data_type(rows, 'FX') == FX
    assert resolve_data_type(rows) == EQUITY
    try:
        resolve_data_type(rows, 'bonds')
        assert False, 'Expected ValueError'
    except ValueError as e:
        assert 'bonds' in str(e)


def test_normalize_header():
    assert normalize_header('Notional_Amount') == 'notionalamount'
    assert normalize_header(' Trade - ID ') == 'tradeid'


def test_exact_mapping_is_case_sensitive():
    mapping = build_exact_mapping(EQUITY_FIELDS, ['Trade ID', 'symbol', 'Price'])
    assert mapping == {'trade_id': 'Trade ID', 'price': 'Price'}


def test_flexible_maps_trade_value_to_notional_amount():
    mapping = build_mapping(EQUITY_FIELDS, ['Trade ID', 'NotionalAmount'], FLEXIBLE)
    assert mapping['trade_value'] == 'NotionalAmount'
    assert mapping['trade_id'] == 'Trade ID'


def test_flexible_first_alias_wins():
    mapping = build_flexible_mapping(EQUITY_FIELDS, ['Amount', 'NotionalAmount'])
    assert mapping['trade_value'] == 'NotionalAmount'


def test_flexible_exact_label_beats_alias():
    # the alias lookup alone would resolve "fxrate" to the later "fx_rate"
    mapping = build_flexible_mapping(FX_FIELDS, ['FXRate', 'fx_rate'])
    assert mapping['fx_rate'] == 'FXRate'


def test_flexible_cross_type_headers():
    headers = ['Trade ID', 'Symbol', 'Trade Date', 'Counterparty', 'Commission']
    mapping = build_flexible_mapping(FX_FIELDS, headers)
    assert mapping['trade_id'] == 'Trade ID'
    assert mapping['trade_date'] == 'Trade Date'
    assert mapping['currency_pair'] == 'Symbol'
    assert mapping['commission_amount'] == 'Commission'


def test_build_mapping_is_idempotent():
    headers = ['TradeID', 'CurrencyPair', 'Notional Amount', 'fx_rate', 'Broker']
    assert build_mapping(FX_FIELDS, headers) == build_mapping(FX_FIELDS, headers)


def test_build_mapping_unknown_strategy():
    try:
        build_mapping(FX_FIELDS, ['TradeID'], 'fuzzy')
        assert False, 'Expected ValueError'
    except ValueError as e:
        assert 'fuzzy' in str(e)


def test_empty_headers_map_nothing():
    assert build_mapping(EQUITY_FIELDS, [], EXACT) == {}
    assert build_mapping(EQUITY_FIELDS, [], FLEXIBLE) == {}


def test_mapping_status_counts_required():
    mapping = {'trade_id': 'TradeID', 'currency_pair': 'CurrencyPair'}
    status = mapping_status(FX_FIELDS, mapping)
    assert status.mapped == 2
    assert status.total == len(FX_FIELDS)
    assert status.required is False
    # buy_sell, notional_amount and fx_rate remain
    assert status.missing_required == 3


def test_end_to_end_headers_leave_trade_value_unmapped():
    headers = ['Trade ID', 'Symbol', 'Quantity', 'Price', 'Trade Date']
    assert 'trade_value' not in build_mapping(EQUITY_FIELDS, headers, EXACT)
    assert 'trade_value' not in build_mapping(EQUITY_FIELDS, headers, FLEXIBLE)


def test_session_set_and_clear_field():
    session = MappingSession(['TradeID', 'Pair', 'Side', 'Notional', 'Rate'], FX)
    assert session.mapping['fx_rate'] == 'Rate'
    assert not session.can_submit

    session.set_field('currency_pair', 'Pair')
    session.set_field('buy_sell', 'Side')
    session.set_field('notional_amount', 'Notional')
    assert session.can_submit

    session.set_field('buy_sell', '')
    assert 'buy_sell' not in session.mapping
    assert session.status.missing_required == 1


def test_session_rejects_unknown_header_and_key():
    session = MappingSession(['Trade ID', 'Symbol'], EQUITY)
    try:
        session.set_field('symbol', 'Ticker')
        assert False, 'Expected MappingError'
    except MappingError as e:
        assert 'Ticker' in str(e)
    try:
        session.set_field('currency_pair', 'Symbol')
        assert False, 'Expected MappingError'
    except MappingError:
        pass
    assert session.mapping['symbol'] == 'Symbol'


def test_session_switch_type_remaps_same_headers():
    session = MappingSession(['Trade ID', 'Symbol', 'NotionalAmount'], EQUITY)
    assert session.mapping['trade_value'] == 'NotionalAmount'

    mapping = session.switch_type(FX)
    assert session.field_set == get_field_set(FX)
    assert mapping['notional_amount'] == 'NotionalAmount'
    assert mapping['currency_pair'] == 'Symbol'
    assert 'trade_value' not in mapping


def test_classify_skips_malformed_leading_rows():
    assert classify([None, row_with(['TradeID', 'FXRate'])]) == FX
    assert classify([None]) == EQUITY


def test_failed_switch_leaves_session_unchanged():
    session = MappingSession(['Trade ID', 'Symbol', 'Price'], EQUITY)
    before = dict(session.mapping)
    try:
        session.switch_type(FX, 'fuzzy')
        assert False, 'Expected ValueError'
    except ValueError:
        pass
    assert session.data_type == EQUITY
    assert session.mapping == before
