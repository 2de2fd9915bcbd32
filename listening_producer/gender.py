"""Rule-based speaker gender guess used to bias automatic voice casting."""

import re

from listening_producer.models import Gender

MALE_NAMES = frozenset({
    "john", "james", "robert", "michael", "william", "david", "richard", "joseph", "thomas", "charles",
    "christopher", "daniel", "matthew", "anthony", "donald", "mark", "paul", "steven", "andrew", "kenneth",
    "joshua", "george", "kevin", "brian", "edward", "ronald", "timothy", "jason", "jeffrey", "ryan",
    "jacob", "gary", "nicholas", "eric", "stephen", "jonathan", "larry", "justin", "scott", "brandon",
    "benjamin", "samuel", "frank", "gregory", "raymond", "alexander", "patrick", "jack", "dennis", "jerry",
    "adam", "harry", "tyler", "aaron", "jose", "henry", "douglas", "peter", "zachary", "nathan", "walter",
    "kyle", "harold", "carl", "jeremy", "keith", "roger", "gerald", "ethan", "arthur", "terry", "christian",
    "sean", "lawrence", "austin", "joe", "noah", "jesse", "albert", "billy", "bruce", "willie", "jordan",
    "dylan", "alan", "ralph", "gabriel", "roy", "juan", "wayne", "eugene", "logan", "randy", "louis",
    "russell", "vincent", "philip", "bobby", "johnny", "bradley", "mike", "matt", "chris", "alex", "sam",
    "tom", "dave", "steve", "jim", "dan", "tim", "bob", "bill", "ron", "jeff", "greg", "ken", "ben",
    "omar", "ahmed", "ali", "hassan", "yusuf", "leo", "max", "oliver", "liam", "lucas", "mateo",
    "puck", "charon", "fenrir",
})

FEMALE_NAMES = frozenset({
    "mary", "patricia", "jennifer", "linda", "elizabeth", "barbara", "susan", "jessica", "sarah", "karen",
    "nancy", "lisa", "betty", "margaret", "sandra", "ashley", "kimberly", "emily", "donna", "michelle",
    "dorothy", "carol", "amanda", "melissa", "deborah", "stephanie", "rebecca", "sharon", "laura", "cynthia",
    "kathleen", "amy", "shirley", "angela", "helen", "anna", "brenda", "pamela", "nicole", "samantha",
    "katherine", "emma", "ruth", "christine", "catherine", "debra", "rachel", "carolyn", "janet", "virginia",
    "maria", "heather", "diane", "julie", "joyce", "victoria", "olivia", "kelly", "christina", "lauren",
    "joan", "evelyn", "judith", "megan", "cheryl", "andrea", "hannah", "martha", "jacqueline", "frances",
    "gloria", "ann", "teresa", "kathryn", "sara", "janice", "jean", "alice", "madison", "julia", "grace",
    "judy", "abigail", "marie", "denise", "beverly", "amber", "theresa", "marilyn", "danielle", "diana",
    "brittany", "natalie", "sophia", "rose", "kayla", "alexis", "jane", "liz", "deb", "cathy", "katie",
    "beth", "jen", "ava", "mia", "chloe", "lily", "zoe", "fatima", "aisha", "layla", "noor", "mariam",
    "kore", "zephyr", "mom", "mother", "grandma", "aunt", "sister", "queen", "lady", "madam",
})

_MALE_TITLE_RE = re.compile(
    r"\b(mr|sir|king|lord|father|dad|grandpa|brother|uncle|boy|male|guy|man)\b"
)
_FEMALE_TITLE_RE = re.compile(
    r"\b(mrs|ms|miss|lady|queen|mother|mom|grandma|sister|aunt|girl|female|woman|madam)\b"
)


def guess_gender(label: str) -> Gender:
    """Guess a speaker's gender from honorifics, then from the first name.

    Advisory only; unknown or empty labels are Gender.NEUTRAL.
    """
    name = str(label or "").lower().strip()
    if not name:
        return Gender.NEUTRAL

    if _MALE_TITLE_RE.search(name):
        return Gender.MALE
    if _FEMALE_TITLE_RE.search(name):
        return Gender.FEMALE

    first_name = re.sub(r"[^a-z]", "", name.split()[0])
    if first_name in FEMALE_NAMES:
        return Gender.FEMALE
    if first_name in MALE_NAMES:
        return Gender.MALE

    return Gender.NEUTRAL
