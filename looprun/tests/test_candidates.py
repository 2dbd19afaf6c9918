import asyncio

import pytest

from looprun.candidates import CandidateGenerator, batch_params
from looprun.errors import RouteProviderFailure, RouteTooShort, StaleBatch


def make_generator(provider):
    return CandidateGenerator(provider, seed_source=lambda: 1000)


def test_too_short_rejected_before_any_request(origin, fake_provider):
    provider = fake_provider()
    gen = make_generator(provider)
    with pytest.raises(RouteTooShort):
        asyncio.run(gen.generate(origin, 0.5, count=4))
    assert provider.calls == []
    assert gen.current is None


def test_just_under_a_mile_is_rejected(origin, fake_provider):
    provider = fake_provider()
    gen = make_generator(provider)
    # 0.99 mi = 1593 m < 1600 m
    with pytest.raises(RouteTooShort):
        asyncio.run(gen.generate(origin, 0.99))
    assert provider.calls == []


@pytest.mark.parametrize("miles", [float("nan"), float("inf")])
def test_non_finite_distance_rejected_before_any_request(origin, fake_provider, miles):
    provider = fake_provider()
    gen = make_generator(provider)
    with pytest.raises(RouteTooShort):
        asyncio.run(gen.generate(origin, miles))
    assert provider.calls == []
    assert gen.current is None


def test_four_candidates_first_selected(origin, fake_provider):
    provider = fake_provider()
    gen = make_generator(provider)
    cs = asyncio.run(gen.generate(origin, 2.0, count=4))

    assert len(cs) == 4
    assert [c.id for c in cs] == [0, 1, 2, 3]
    assert [c.is_selected for c in cs] == [True, False, False, False]
    assert cs.selected.id == 0
    geometries = {tuple(c.geometry) for c in cs}
    assert len(geometries) == 4
    assert gen.current is cs

    assert len(provider.calls) == 4
    assert all(c["length_m"] == pytest.approx(2.0 * 1609.34) for c in provider.calls)
    assert sorted(c["seed"] for c in provider.calls) == [1001, 1002, 1003, 1004]
    assert all(c["origin"] == origin for c in provider.calls)


def test_one_failure_fails_the_whole_batch(origin, fake_provider):
    provider = fake_provider(fail_on=3)
    gen = make_generator(provider)
    with pytest.raises(RouteProviderFailure):
        asyncio.run(gen.generate(origin, 2.0, count=4))
    assert gen.current is None


def test_failure_keeps_previous_set(origin, fake_provider):
    async def scenario():
        gen = make_generator(fake_provider())
        first = await gen.generate(origin, 2.0)
        gen.provider = fake_provider(fail_on=1)
        with pytest.raises(RouteProviderFailure):
            await gen.generate(origin, 3.0)
        return gen, first

    gen, first = asyncio.run(scenario())
    assert gen.current is first


def test_unexpected_provider_error_is_wrapped(origin):
    class Broken:
        async def request_round_trip(self, origin, length_m, seed, points=4):
            raise KeyError("features")

    gen = make_generator(Broken())
    with pytest.raises(RouteProviderFailure):
        asyncio.run(gen.generate(origin, 2.0))


def test_select_candidate_flips_flags_only(origin, fake_provider):
    gen = make_generator(fake_provider())
    cs = asyncio.run(gen.generate(origin, 2.0, count=4))
    geometries = [list(c.geometry) for c in cs]

    chosen = gen.select_candidate(2)
    assert chosen.id == 2
    assert [c.is_selected for c in cs] == [False, False, True, False]
    assert [c.geometry for c in cs] == geometries

    with pytest.raises(ValueError):
        gen.select_candidate(4)
    assert cs.selected.id == 2


def test_select_before_generate(fake_provider):
    gen = make_generator(fake_provider())
    with pytest.raises(ValueError):
        gen.select_candidate(0)


def test_sequential_matches_concurrent(origin, fake_provider):
    provider = fake_provider()
    gen = make_generator(provider)
    cs = asyncio.run(gen.generate(origin, 2.0, count=3, sequential=True))
    assert len(cs) == 3
    assert [c["seed"] for c in provider.calls] == [1001, 1002, 1003]
    assert [c.seed for c in cs] == [1001, 1002, 1003]


def test_newer_request_supersedes_in_flight_batch(origin, fake_provider):
    async def scenario():
        gate = asyncio.Event()
        gen = make_generator(fake_provider(gate=gate))
        old = asyncio.ensure_future(gen.generate(origin, 2.0))
        await asyncio.sleep(0)
        assert gen.busy

        gen.provider = fake_provider()
        new = await gen.generate(origin, 3.0)
        gate.set()
        with pytest.raises(StaleBatch):
            await old
        return gen, new

    gen, new = asyncio.run(scenario())
    assert gen.current is new
    assert new.target_miles == 3.0
    assert new.generation == 2


def test_cancel_abandons_batch(origin, fake_provider):
    async def scenario():
        gen = make_generator(fake_provider(gate=asyncio.Event()))
        task = asyncio.ensure_future(gen.generate(origin, 2.0))
        await asyncio.sleep(0)
        assert gen.cancel() is True
        with pytest.raises(StaleBatch):
            await task
        assert gen.cancel() is False
        return gen

    gen = asyncio.run(scenario())
    assert gen.current is None
    assert not gen.busy


def test_batch_params_are_distinct():
    params = batch_params(50, 4)
    assert params == [(51, 5), (52, 6), (53, 7), (54, 8)]
