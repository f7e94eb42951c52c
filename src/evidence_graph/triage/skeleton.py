import re
from typing import List

PLACEHOLDER = "···"

_TOKEN_RE = re.compile(r"\d+(?:[.,]\d+)*%?|[A-Za-z][A-Za-z'\-]*")

_FUNCTION_WORDS = frozenset(
    """
    a an the this that these those each every either neither some any no all both few many much more most
    other another such what which whose who whom whatever whichever
    i me my mine we us our ours you your yours he him his she her hers it its they them their theirs
    myself yourself himself herself itself ourselves themselves one
    and or but nor so yet for because although though while whereas if unless until since as than whether
    about above across after against along among around at before behind below beneath beside between beyond
    by down during except from in inside into like near of off on onto out outside over past per through
    throughout to toward towards under underneath up upon via with within without
    can could may might must shall should will would ought
    be am is are was were been being have has had having do does did done doing get gets got
    not never no nor none nothing n't
    how why when where whenever wherever
    there here then also just only even still already again too very quite rather really
    """.split()
)

# Verbs and adjectives common enough in advice text to list outright.
_LEXICON = frozenset(
    """
    make makes made use uses used need needs try tries tried keep keeps kept take takes took give gives gave
    run runs ran set sets put puts go goes went come comes came see sees saw know knows knew think thinks
    want wants let lets help helps start starts stop stops ensure ensures avoid avoids consider considers
    check checks create creates apply applies add adds remove removes back install installs upgrade
    upgrades update updates follow follows choose chooses prefer prefers recommend recommends suggest
    suggests depend depends require requires allow allows provide provides include includes become becomes
    seem seems appear appears work works cause causes lead leads reduce reduces increase increases
    good bad better best worse worst new old high low large small big important necessary possible likely
    unlikely certain uncertain sure clear easy hard simple safe unsafe different same useful critical
    essential key main major minor full first last next early late prior recommended required
    """.split()
)

_SUFFIXES = ("ing", "ed", "ly", "ous", "ive", "ful", "less", "able", "ible")
_SUFFIX_NOUNS = frozenset(
    """
    thing things something nothing anything everything string strings morning evening ceiling spring king
    ring wing building meeting setting settings training hundred speed seed bed family supply reply
    table cable variable example archive drive objective
    """.split()
)


def _base(token: str) -> str:
    return token.lower().split("'")[0]


def _is_content_word(token: str, previous: str, first: bool) -> bool:
    if token[0].isdigit():
        return True
    base = _base(token)
    if not base or base in _FUNCTION_WORDS or base in _LEXICON:
        return False
    # a word right after a modal or "to" is read as a verb
    if previous in ("to", "can", "could", "may", "might", "must", "shall", "should", "will", "would"):
        return False
    if token[0].isupper() and not first:
        return True
    if base in _SUFFIX_NOUNS:
        return True
    return not (len(base) > 4 and base.endswith(_SUFFIXES))


def skeletonize(text: str) -> str:
    """Reduce a sentence to its content words (nouns, numbers, names).

    Verbs, adjectives, adverbs and function words are dropped using a
    lexicon plus suffix rules. Returns ``···`` when nothing survives.
    """
    if not text or not text.strip():
        return PLACEHOLDER
    tokens = _TOKEN_RE.findall(text)
    kept: List[str] = []
    previous = ""
    for i, token in enumerate(tokens):
        if _is_content_word(token, previous, i == 0):
            kept.append(token)
        previous = _base(token)
    return " ".join(kept) if kept else PLACEHOLDER
