import pytest
from fakes import product

from catalogsync.matching.set_matcher import MatchPath, SetMatcher


@pytest.fixture
def matcher() -> SetMatcher:
    return SetMatcher()


class TestSimilarityPath:
    def test_brand_capitalization_accepted(self, matcher: SetMatcher) -> None:
        """Console names differing only in capitalization are the same set."""
        decision = matcher.decide(
            "1992 SkyBox Marvel Masterpieces",
            product("Colossus #64", "1992 Skybox Marvel Masterpieces"),
        )

        assert decision.accepted
        assert decision.path == MatchPath.SIMILARITY
        assert decision.score == pytest.approx(1.0)

    def test_unrelated_set_rejected(self, matcher: SetMatcher) -> None:
        """Nothing in common means no path accepts."""
        decision = matcher.decide(
            "1992 SkyBox Marvel Masterpieces",
            product("Charizard #4", "Pokemon Base Set"),
        )

        assert not decision.accepted
        assert decision.path == MatchPath.NONE

    def test_threshold_is_configurable(self) -> None:
        """A stricter threshold pushes near-misses off the similarity path."""
        strict = SetMatcher(similarity_threshold=0.99)

        decision = strict.decide(
            "1992 SkyBox Marvel Masterpieces",
            product("Colossus #64", "1992 SkyBox Marvel Masterpiece"),
        )

        assert decision.path != MatchPath.SIMILARITY


class TestKeywordPath:
    def test_subset_without_keyword_rejected(self, matcher: SetMatcher) -> None:
        """A base-set product never lands in a 'what if' subset."""
        decision = matcher.decide(
            "2020 Marvel Masterpieces What If",
            product("Wolverine #5", "Marvel 2020 Masterpieces"),
        )

        assert not decision.accepted
        assert decision.path == MatchPath.KEYWORD

    def test_subset_with_all_tokens_accepted(self, matcher: SetMatcher) -> None:
        """Keyword, year and 'masterpieces' all present."""
        decision = matcher.decide(
            "2020 Marvel Masterpieces What If",
            product("Hulk #3", "2020 Marvel Masterpieces What If"),
        )

        assert decision.accepted
        assert decision.path == MatchPath.KEYWORD

    def test_tokens_may_come_from_product_name(self, matcher: SetMatcher) -> None:
        """The subset keyword can be carried by the product label."""
        decision = matcher.decide(
            "2020 Marvel Masterpieces What If",
            product("Hulk [What If] #3", "2020 Marvel Masterpieces"),
        )

        assert decision.accepted

    def test_wrong_year_rejected(self, matcher: SetMatcher) -> None:
        """'what if' requires the target's year."""
        decision = matcher.decide(
            "2020 Marvel Masterpieces What If",
            product("Hulk #3", "2018 Marvel Masterpieces What If"),
        )

        assert not decision.accepted

    def test_autograph_subset(self, matcher: SetMatcher) -> None:
        """Autograph subsets need the keyword plus the target's year and brand."""
        accepted = matcher.decide(
            "2016 Upper Deck Marvel Autograph",
            product("Stan Lee Autograph #A1", "2016 Upper Deck Marvel Annual"),
        )
        rejected = matcher.decide(
            "2016 Upper Deck Marvel Autograph",
            product("Stan Lee #1", "2016 Upper Deck Marvel"),
        )

        assert accepted.accepted
        assert not rejected.accepted

    def test_autograph_from_other_year_and_brand_rejected(self, matcher: SetMatcher) -> None:
        """Sharing only the subset keyword is not enough."""
        decision = matcher.decide(
            "1992 SkyBox Marvel Masterpieces Autographs",
            product("Stan Lee Autograph #1", "2023 Topps Chrome Star Wars Autograph"),
        )

        assert not decision.accepted
        assert decision.path == MatchPath.KEYWORD

    def test_autograph_from_other_manufacturer_rejected(self, matcher: SetMatcher) -> None:
        """Same year and keyword, different manufacturer."""
        decision = matcher.decide(
            "2016 Upper Deck Marvel Autograph",
            product("Stan Lee Autograph #A1", "2016 Topps Marvel Autograph"),
        )

        assert not decision.accepted

    def test_own_autograph_set_accepted(self, matcher: SetMatcher) -> None:
        """The target's own subset products pass every anchor."""
        decision = matcher.decide(
            "1992 SkyBox Marvel Masterpieces Autographs",
            product("Stan Lee #1", "1992 SkyBox Marvel Masterpieces Autographs"),
        )

        assert decision.accepted
        assert decision.path == MatchPath.KEYWORD

    def test_short_print_subset(self, matcher: SetMatcher) -> None:
        """Base-set products never land in a short print subset."""
        accepted = matcher.decide(
            "2019 Topps Chrome Short Print",
            product("Mike Trout #1", "2019 Topps Chrome Short Print"),
        )
        rejected = matcher.decide(
            "2019 Topps Chrome Short Print",
            product("Mike Trout #1", "2019 Topps Chrome"),
        )

        assert accepted.accepted
        assert not rejected.accepted
        assert rejected.path == MatchPath.KEYWORD

    def test_what_if_outside_masterpieces(self, matcher: SetMatcher) -> None:
        """'masterpieces' is only required when the target names it."""
        decision = matcher.decide(
            "1994 Fleer Marvel What If",
            product("Spider-Man #12", "1994 Fleer Marvel What If"),
        )

        assert decision.accepted
        assert decision.path == MatchPath.KEYWORD

    def test_what_if_masterpieces_still_required_when_named(
        self, matcher: SetMatcher
    ) -> None:
        """A Masterpieces 'what if' target rejects a plain 'what if' product."""
        decision = matcher.decide(
            "2020 Marvel Masterpieces What If",
            product("Hulk #3", "2020 Marvel What If"),
        )

        assert not decision.accepted


class TestWordOverlapPath:
    def test_reordered_words_accepted(self, matcher: SetMatcher) -> None:
        """Every significant word present, order and extras ignored."""
        decision = matcher.decide(
            "1994 Fleer Ultra X-Men",
            product("Storm #12", "Fleer Ultra X-Men 1994 Trading Cards"),
        )

        assert decision.accepted
        assert decision.path == MatchPath.WORD_OVERLAP
        assert decision.score == pytest.approx(1.0)


class TestStructuredPath:
    def test_year_manufacturer_and_line_accepted(self, matcher: SetMatcher) -> None:
        """Long target names still match on year, maker and product line."""
        decision = matcher.decide(
            "1993 Upper Deck Marvel Masterpieces Series Premium Edition",
            product("Thor #9", "1993 Upper Deck Marvel"),
        )

        assert decision.accepted
        assert decision.path == MatchPath.STRUCTURED

    def test_different_year_rejected(self, matcher: SetMatcher) -> None:
        """Structured match requires the same year."""
        decision = matcher.decide(
            "1993 Upper Deck Marvel Masterpieces Series Premium Edition",
            product("Thor #9", "1995 Upper Deck Marvel"),
        )

        assert not decision.accepted


class TestExclusion:
    def test_merchandise_excluded(self, matcher: SetMatcher) -> None:
        """Non-card products are rejected even with an identical console name."""
        decision = matcher.decide(
            "1992 SkyBox Marvel Masterpieces",
            product("Marvel Masterpieces Funko Pop", "1992 SkyBox Marvel Masterpieces"),
        )

        assert not decision.accepted
        assert decision.path == MatchPath.EXCLUDED

    def test_video_game_console_excluded(self, matcher: SetMatcher) -> None:
        """Provider video game groupings are rejected."""
        decision = matcher.decide(
            "Marvel Spider-Man", product("Marvel's Spider-Man", "Playstation 4")
        )

        assert decision.path == MatchPath.EXCLUDED

    def test_exclusion_is_whole_word(self, matcher: SetMatcher) -> None:
        """'toy' does not exclude 'Toyman'."""
        decision = matcher.decide(
            "1992 SkyBox Marvel Masterpieces",
            product("Toyman #12", "1992 SkyBox Marvel Masterpieces"),
        )

        assert decision.accepted


class TestFilter:
    def test_keeps_input_order(self, matcher: SetMatcher) -> None:
        """Accepted products come back in the order given."""
        products = [
            product("Colossus #64", "1992 Skybox Marvel Masterpieces"),
            product("Charizard #4", "Pokemon Base Set"),
            product("Storm #12", "1992 SkyBox Marvel Masterpieces"),
        ]

        accepted = matcher.filter("1992 SkyBox Marvel Masterpieces", products)

        assert [p.product_name for p in accepted] == ["Colossus #64", "Storm #12"]
