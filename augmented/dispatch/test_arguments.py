#!/usr/bin/env python3
"""
Tests for command argument preparation
"""

import logging

import pytest

from augmented.access_flags import AccessFlags
from augmented.dispatch.arguments import (
    ArgumentPreparer,
    coerce_arguments,
    coerce_value,
    int_bounds,
    prepare_mint_rate,
    prepare_percentage,
)
from augmented.errors import InvalidArgumentError, ResolutionError


class TestPreparePercentage:

    def test_percent_sign(self):
        assert prepare_percentage('5.25%', True) == 525
        assert prepare_percentage('100%', True) == 10000

    def test_strict_rejects_plain_number(self):
        with pytest.raises(InvalidArgumentError, match="Not a percentage: 525"):
            prepare_percentage('525', True)

    def test_lenient_plain_number(self):
        assert prepare_percentage('525', False) == 525

    def test_leading_percent_is_not_a_percentage(self):
        with pytest.raises(InvalidArgumentError):
            prepare_percentage('%5', True)

    def test_too_precise(self):
        with pytest.raises(InvalidArgumentError):
            prepare_percentage('5.255%', True)


class TestPrepareMintRate:

    def test_decimal_rate(self):
        assert prepare_mint_rate('1.5') == '1500000000000000000'

    def test_hex_passes_through(self):
        assert prepare_mint_rate('0x10') == '0x10'

    def test_invalid(self):
        with pytest.raises(InvalidArgumentError):
            prepare_mint_rate('fast')


class TestCoercion:
    """Test class for ABI driven argument coercion"""

    def test_integers(self):
        assert coerce_value('uint256', '42') == 42
        assert coerce_value('uint32', '0x10') == 16
        assert coerce_value('int8', -3) == -3

    @pytest.mark.parametrize('abi_type, value', [
        ('uint256', '-1'),
        ('uint256', 2**256),
        ('uint8', '256'),
        ('uint32', '0x100000000'),
        ('int8', '128'),
        ('int8', -129),
    ])
    def test_integer_out_of_range(self, abi_type, value):
        with pytest.raises(InvalidArgumentError, match=f"Value out of range for {abi_type}"):
            coerce_value(abi_type, value)

    def test_integer_bounds(self):
        assert coerce_value('uint8', '255') == 255
        assert coerce_value('int8', '-128') == -128
        assert coerce_value('uint', str(2**256 - 1)) == 2**256 - 1
        assert int_bounds('int') == (-2**255, 2**255 - 1)

    def test_bool(self):
        assert coerce_value('bool', 'true') is True
        assert coerce_value('bool', '0') is False
        with pytest.raises(InvalidArgumentError):
            coerce_value('bool', 'maybe')

    def test_address_is_checksummed(self):
        assert coerce_value('address', '0x' + 'ab' * 20) != '0x' + 'ab' * 20
        with pytest.raises(InvalidArgumentError, match="Invalid address"):
            coerce_value('address', 'DAI')

    def test_address_bad_checksum(self):
        with pytest.raises(InvalidArgumentError, match="Invalid address"):
            coerce_value('address', '0xF39Fd6e51aad88F6F4ce6aB8827279cffFb92266')
        with pytest.raises(InvalidArgumentError, match="Invalid address"):
            coerce_value('address', 'f39fd6e51aad88f6f4ce6ab8827279cfffb92266')
        assert coerce_value('address', '0xF39FD6E51AAD88F6F4CE6AB8827279CFFFB92266') == \
            '0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266'

    def test_arrays(self):
        assert coerce_value('uint256[]', '1,2,3') == [1, 2, 3]
        assert coerce_value('uint256[]', '[4, 5]') == [4, 5]
        assert coerce_value('uint256[]', ['6']) == [6]
        assert coerce_value('uint256[]', '') == []

    def test_bytes(self):
        assert coerce_value('bytes', '0x0102') == b'\x01\x02'
        with pytest.raises(InvalidArgumentError):
            coerce_value('bytes32', 'abc')

    def test_tuple(self):
        components = [{'name': 'rate', 'type': 'uint256'}, {'name': 'active', 'type': 'bool'}]
        assert coerce_value('tuple', '{"rate": "7", "active": "true"}', components) == (7, True)
        assert coerce_value('tuple', ['8', False], components) == (8, False)

    def test_malformed_tuple(self):
        components = [{'name': 'rate', 'type': 'uint256'}, {'name': 'active', 'type': 'bool'}]
        with pytest.raises(InvalidArgumentError, match="Invalid tuple argument"):
            coerce_value('tuple', '{rate: 7}', components)
        with pytest.raises(InvalidArgumentError, match="Invalid tuple argument"):
            coerce_value('tuple', '7', components)
        with pytest.raises(InvalidArgumentError, match="Missing tuple fields: active"):
            coerce_value('tuple', '{"rate": "7"}', components)

    def test_arity(self):
        inputs = [{'name': 'a', 'type': 'uint256'}, {'name': 'b', 'type': 'string'}]
        assert coerce_arguments(inputs, ['1', 'x']) == [1, 'x']
        with pytest.raises(InvalidArgumentError, match="Expected 2 arguments, got 1"):
            coerce_arguments(inputs, ['1'])


@pytest.fixture
def preparer(chain, ac, contracts):
    return ArgumentPreparer(chain, ac, contracts)


@pytest.fixture
def data_helper(chain, contracts, role_addresses, addresses, make_token):
    """Data helper listing DAI, USDC and agDAI; agDAI is priced by DAI"""
    role_addresses[AccessFlags.DATA_HELPER] = addresses.data_helper
    dp = contracts.get('ProtocolDataProvider', addresses.data_helper)
    tokens = [
        make_token(addresses.dai, 'DAI', addresses.price_key),
        make_token(addresses.usdc, 'USDC', addresses.usdc),
        make_token(addresses.ag_dai, 'agDAI', addresses.price_key),
        make_token(addresses.weth, 'WETH', '0x' + '00' * 20),
    ]
    # an extra entry past tokenCount is ignored
    listed = tokens + [make_token(addresses.pool_a, 'STALE', addresses.pool_a)]
    chain.respond(dp, 'getAllTokenDescriptions', lambda include_assets: (listed, len(tokens)))
    return dp


@pytest.fixture
def reward_pools(chain, contracts, role_addresses, addresses):
    """Reward configurator with three pools, the last two share a name"""
    role_addresses[AccessFlags.REWARD_CONFIGURATOR] = addresses.reward_configurator
    rc = contracts.get('RewardConfiguratorImpl', addresses.reward_configurator)
    pools = [addresses.pool_a, addresses.pool_b, addresses.pool_c]
    chain.respond(rc, 'list', pools)
    names = {addresses.pool_a: 'DepositPool', addresses.pool_b: 'TeamPool', addresses.pool_c: 'teampool'}
    for addr, name in names.items():
        chain.respond(contracts.get('IManagedRewardPool', addr), 'getPoolName', name)
    return rc


def _calls_to(chain, address):
    return [call for call in chain.calls if call[0].lower() == address.lower()]


class TestPriceTokens:
    """Test class for token symbol to pricing key resolution"""

    @pytest.mark.asyncio
    async def test_symbol_to_price_key(self, preparer, data_helper, addresses):
        assert await preparer.find_price_tokens(['dai', 'USDC']) == [addresses.price_key, addresses.usdc]

    @pytest.mark.asyncio
    async def test_addresses_pass_through(self, preparer, chain, addresses):
        """Addresses and empty values need no token lookup"""
        assert await preparer.find_price_tokens([addresses.weth, '']) == [addresses.weth, '']
        assert chain.calls == []
        assert not preparer.tokens.populated

    @pytest.mark.asyncio
    async def test_descriptions_fetched_once(self, preparer, chain, data_helper, addresses):
        await preparer.find_price_tokens(['DAI', 'USDC', 'agDAI'])
        assert len(_calls_to(chain, addresses.data_helper)) == 1
        assert preparer.tokens.populated

    @pytest.mark.asyncio
    async def test_token_count_limits_descriptions(self, preparer, data_helper):
        with pytest.raises(ResolutionError, match="Unknown token name: STALE"):
            await preparer.find_price_token('STALE')

    @pytest.mark.asyncio
    async def test_unknown_token(self, preparer, data_helper):
        with pytest.raises(ResolutionError, match="Unknown token name: BTC"):
            await preparer.find_price_token('BTC')

    @pytest.mark.asyncio
    async def test_no_pricing_token(self, preparer, data_helper):
        with pytest.raises(ResolutionError, match="Token has no pricing token: WETH"):
            await preparer.find_price_token('WETH')

    @pytest.mark.asyncio
    async def test_ambiguous_symbol(self, chain, contracts, role_addresses, addresses, make_token, preparer):
        role_addresses[AccessFlags.DATA_HELPER] = addresses.data_helper
        dp = contracts.get('ProtocolDataProvider', addresses.data_helper)
        tokens = [make_token(addresses.dai, 'DAI', addresses.dai), make_token(addresses.ag_dai, 'dai', addresses.dai)]
        chain.respond(dp, 'getAllTokenDescriptions', (tokens, 2))

        with pytest.raises(ResolutionError, match="Ambiguous token name: DAI") as exc_info:
            await preparer.find_price_token('DAI')
        assert [m.lower() for m in exc_info.value.matches] == [addresses.dai.lower(), addresses.ag_dai.lower()]

    @pytest.mark.asyncio
    async def test_shared_price_warns(self, preparer, data_helper, addresses, caplog):
        """A shared pricing key is reported, not rejected"""
        with caplog.at_level(logging.WARNING):
            assert await preparer.find_price_token('DAI', warn=True) == addresses.price_key
        assert "Same price is used for: ['DAI', 'agDAI']" in caplog.text

    @pytest.mark.asyncio
    async def test_shared_price_silent_without_warn(self, preparer, data_helper, caplog):
        with caplog.at_level(logging.WARNING):
            await preparer.find_price_token('DAI')
        assert "Same price" not in caplog.text


class TestPoolNames:
    """Test class for pool name resolution"""

    @pytest.mark.asyncio
    async def test_names_and_shares(self, preparer, reward_pools, addresses):
        pools, shares = await preparer.prepare_pool_names_and_shares(['depositpool', '60%', 'TeamPool', '40%'])
        assert pools == [addresses.pool_a, addresses.pool_b]
        assert shares == [6000, 4000]

    @pytest.mark.asyncio
    async def test_duplicate_name_first_wins(self, preparer, reward_pools, addresses, caplog):
        with caplog.at_level(logging.WARNING):
            by_names = await preparer.pools.get()
        assert by_names['teampool'] == addresses.pool_b
        assert "Duplicate pool name" in caplog.text

    @pytest.mark.asyncio
    async def test_pool_names_fetched_once(self, preparer, chain, reward_pools, addresses):
        """Each pool name is read once however many pools are named"""
        await preparer.prepare_pool_names_and_shares(['DepositPool', '10%', 'TeamPool', '20%'])
        await preparer.prepare_pool_names_and_shares(['TeamPool', '30%'])
        for addr in (addresses.pool_a, addresses.pool_b, addresses.pool_c):
            assert len(_calls_to(chain, addr)) == 1
        assert len(_calls_to(chain, addresses.reward_configurator)) == 1

    @pytest.mark.asyncio
    async def test_addresses_skip_lookup(self, preparer, chain, addresses):
        pools, shares = await preparer.prepare_pool_names_and_shares([addresses.pool_c, '1.5%'])
        assert pools == [addresses.pool_c]
        assert shares == [150]
        assert not preparer.pools.populated
        assert chain.calls == []

    @pytest.mark.asyncio
    async def test_empty_list(self, preparer):
        assert await preparer.prepare_pool_names_and_shares([]) == ([], [])

    @pytest.mark.asyncio
    async def test_odd_count(self, preparer):
        with pytest.raises(InvalidArgumentError):
            await preparer.prepare_pool_names_and_shares(['DepositPool'])

    @pytest.mark.asyncio
    async def test_unknown_pool(self, preparer, reward_pools):
        with pytest.raises(ResolutionError, match="Unknown pool name: Nowhere"):
            await preparer.prepare_pool_names_and_shares(['Nowhere', '10%'])

    @pytest.mark.asyncio
    async def test_share_must_be_percentage(self, preparer, reward_pools):
        with pytest.raises(InvalidArgumentError, match="Not a percentage"):
            await preparer.prepare_pool_names_and_shares(['DepositPool', '10'])

    @pytest.mark.asyncio
    async def test_named_pool_address(self, preparer, chain, reward_pools, addresses):
        chain.respond(reward_pools, 'getNamedRewardPools', lambda names: [addresses.pool_c] if names == ('Team',) else ['0x' + '00' * 20])
        assert await preparer.named_pool_address('Team') == addresses.pool_c
        with pytest.raises(ResolutionError, match="Unknown pool name: Other"):
            await preparer.named_pool_address('Other')

    @pytest.mark.asyncio
    async def test_missing_reward_configurator(self, preparer, role_addresses):
        with pytest.raises(ResolutionError, match="No address is set"):
            await preparer.named_pool_address('Team')


if __name__ == "__main__":
    pytest.main([__file__])
