import random

PROMPTS = [
    "The worst thing to say on a first date",
    "A terrible name for a pet goldfish",
    "What the dentist is secretly thinking",
    "The real reason dinosaurs went extinct",
    "A rejected flavour of potato chip",
    "The least inspiring motivational poster",
    "What your fridge would say if it could talk",
    "A bad slogan for a funeral home",
    "The most awkward thing to find in a library book",
    "A sport that should never be televised",
    "What pirates do on their day off",
    "The worst superpower to get at age 80",
    "A warning label nobody needs",
    "The secret ingredient in grandma's soup",
    "A terrible theme for a wedding",
    "What the moon thinks about all night",
    "A job title that sounds made up",
    "The worst thing to shout in a quiet elevator",
    "A new Olympic event for lazy people",
    "What cats are plotting right now",
    "The worst advice a fortune cookie could give",
    "A tourist attraction that would close in a week",
    "What aliens think our traffic lights mean",
    "A horrible name for a rock band",
    "The real contents of the office microwave",
    "An excuse for being late that nobody believes",
    "The last words of a houseplant",
    "A bad name for a self-driving car",
    "What the robot uprising will be about",
    "The least popular ice cream topping",
    "A holiday that should exist but doesn't",
    "What your shadow does when you're not looking",
    "The worst thing to bring to a potluck",
    "A children's book that would get banned",
    "The worst possible hotel amenity",
    "What ghosts complain about",
    "A new use for a rubber chicken",
    "The most useless kitchen gadget",
    "What socks do after they disappear in the dryer",
    "A text you never want to get from your boss",
]


class PromptPool:
    """Non-repeating prompt draws for one game.

    ``used_indices`` is the game's persisted list; after picking, read
    :attr:`used_indices` back and store it on the game. Once every prompt has
    been used the pool refills from the whole catalog, so repeats are only
    possible after exhaustion.
    """

    def __init__(self, used_indices=None, catalog=None, rng=None):
        self.catalog = list(catalog if catalog is not None else PROMPTS)
        self.rng = rng or random
        self._used = set(used_indices or [])
        self._available = [i for i in range(len(self.catalog)) if i not in self._used]

    def pick(self, count=1):
        results = []
        for _ in range(count):
            if not self._available:
                self._available = list(range(len(self.catalog)))
            idx = self._available.pop(self.rng.randrange(len(self._available)))
            self._used.add(idx)
            results.append(self.catalog[idx])
        return results

    @property
    def used_indices(self):
        return sorted(self._used)
