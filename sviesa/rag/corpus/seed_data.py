"""
RAG Corpus Seed Data
====================

Built-in documents loaded into the chunk store at startup and after a
reset.

2 Corpus:
- Biblija: scripture excerpts (primary source), verse-tagged "[Knyga s:e]"
- Katekizmas: Catechism of the Catholic Church excerpts (secondary source)

Ingested documents are added on top at runtime.
"""

from typing import Any, Dict, List

# =============================================================================
# INITIAL CHUNKS - pre-split, not passed through the chunker
# =============================================================================

INITIAL_CHUNKS = [
    {
        "id": "initial-pradzios-1",
        "source": "Biblija",
        "book_or_section": "Pradžios knyga",
        "chapter_or_ref": "1 skyrius",
        "content": (
            "[Pradžios 1:1] Pradžioje Dievas sukūrė dangų ir žemę. Žemė buvo beformė ir tuščia, "
            "tamsa gaubė bedugnę, ir Dievo Dvasia plevenė virš vandenų."
        ),
        "tags": ["sukūrimas", "pradžia"],
    },
]

# =============================================================================
# BIBLE CORPUS
# =============================================================================

BIBLE_DOCUMENTS = [
    {
        "title": "Evangelija pagal Matą",
        "content": """
[Mato 5:1-2] Pamatęs minias, Jėzus užkopė į kalną. Jam atsisėdus, prie jo priėjo mokiniai. Tada jis prabilo ir mokė juos, sakydamas:

[Mato 5:3] Palaiminti turintys vargdienio dvasią, nes jų yra dangaus karalystė.

[Mato 5:4] Palaiminti liūdintys, nes jie bus paguosti.

[Mato 5:5-6] Palaiminti romieji, nes jie paveldės žemę. Palaiminti alkstantys ir trokštantys teisumo, nes jie bus pasotinti.

[Mato 5:7-8] Palaiminti gailestingieji, nes jie susilauks gailestingumo. Palaiminti tyraširdžiai, nes jie regės Dievą.

[Mato 5:9-10] Palaiminti taikdariai, nes jie bus vadinami Dievo vaikais. Palaiminti persekiojami dėl teisumo, nes jų yra dangaus karalystė.

[Mato 6:9-13] Todėl jūs melskitės taip: Tėve mūsų, kuris esi danguje, teesie šventas tavo vardas, teateinie tavo karalystė, teesie tavo valia kaip danguje, taip ir žemėje. Kasdienės mūsų duonos duok mums šiandien ir atleisk mums mūsų kaltes, kaip ir mes atleidžiame savo kaltininkams, ir nevesk mūsų į pagundą, bet gelbėk mus nuo pikto.

[Mato 22:37-39] Jėzus atsakė: Mylėk Viešpatį, savo Dievą, visa savo širdimi, visa savo siela ir visu savo protu. Tai didžiausias ir pirmas įsakymas. Antras panašus į jį: Mylėk savo artimą kaip save patį.
""",
    },
    {
        "title": "Evangelija pagal Joną",
        "content": """
[Jono 1:1-3] Pradžioje buvo Žodis, tas Žodis buvo pas Dievą, ir tas Žodis buvo Dievas. Jis pradžioje buvo pas Dievą. Visa per jį atsirado, ir be jo neatsirado nieko, kas tik yra atsiradę.

[Jono 3:16] Dievas taip pamilo pasaulį, jog atidavė savo viengimį Sūnų, kad kiekvienas, kuris jį tiki, nepražūtų, bet turėtų amžinąjį gyvenimą.

[Jono 6:35] Jėzus jiems tarė: Aš esu gyvybės duona. Kas ateina pas mane, nebealks, ir kas tiki mane, niekados nebetrokš.
""",
    },
    {
        "title": "Psalmių knyga",
        "content": """
[Psalmių 23:1-3] Viešpats mano ganytojas, man nieko netrūksta. Žaliose ganyklose jis leidžia man ilsėtis, prie ramių vandenų mane veda, atgaivina mano sielą.

[Psalmių 23:4] Net jei eičiau per tamsų slėnį, aš nebijosiu pikto, nes tu esi su manimi. Tavo lazda ir tavo ganytojo kuoka mane guodžia.
""",
    },
]

# =============================================================================
# CATECHISM CORPUS
# =============================================================================

CATECHISM_DOCUMENTS = [
    {
        "title": "KBK 2276-2279 Eutanazija",
        "content": """
2276. Tie, kurių gyvybė sumenkusi ar susilpnėjusi, turi būti ypač gerbiami. Ligoniai ar neįgalieji turi būti remiami, kad kuo normaliau gyventų.

2277. Kad ir kokie būtų motyvai ir priemonės, tiesioginė eutanazija yra neįgaliųjų, ligonių ar mirštančiųjų gyvybės nutraukimas. Ji moraliai nepriimtina. Veiksmas ar neveikimas, kuris pats savaime arba savo tikslu sukelia mirtį, kad būtų panaikintas skausmas, yra žmogžudystė, sunkiai prieštaraujanti žmogaus asmens orumui ir pagarbai gyvajam Dievui, jo Kūrėjui.

2278. Atsisakyti brangių, pavojingų, nepaprastų ar numatomiems rezultatams neproporcingų gydymo priemonių gali būti teisėta. Tuomet nenorima sukelti mirties, o tik pripažįstama, kad jos neįmanoma išvengti.

2279. Net kai mirtis atrodo neišvengiama, įprastinė ligonio priežiūra neturi būti nutraukta. Nuskausminamųjų vartojimas mirštančiojo kančioms palengvinti, net rizikuojant sutrumpinti jo dienas, gali būti moraliai atitinkantis žmogaus orumą.
""",
    },
    {
        "title": "KBK 1322-1327 Eucharistija",
        "content": """
1322. Švenčiausioji Eucharistija užbaigia krikščioniškosios iniciacijos sakramentus. Per Eucharistiją visa bendruomenė dalyvauja paties Viešpaties aukoje.

1324. Eucharistija yra viso krikščioniškojo gyvenimo versmė ir viršūnė. Visi kiti sakramentai, kaip ir visi bažnytiniai tarnavimai bei apaštalavimo darbai, yra glaudžiai susiję su Švenčiausiąja Eucharistija ir į ją nukreipti.

1327. Trumpai tariant, Eucharistija yra mūsų tikėjimo santrauka ir suma: mūsų mąstysena derinasi su Eucharistija, o Eucharistija savo ruožtu patvirtina mūsų mąstyseną.
""",
    },
    {
        "title": "KBK 2559-2565 Malda",
        "content": """
2559. Malda yra sielos pakilimas į Dievą arba tinkamų gėrybių prašymas iš Dievo. Nuolankumas yra maldos pagrindas.

2564. Krikščioniškoji malda yra Dievo ir žmogaus sandoros santykis Kristuje. Ji yra Dievo ir žmogaus veiksmas, kylantis iš Šventosios Dvasios ir mūsų, visiškai nukreiptas į Tėvą, susivienijus su Dievo Sūnaus, tapusio žmogumi, žmogiškąja valia.

2565. Naujojoje Sandoroje malda yra gyvas Dievo vaikų santykis su be galo geru savo Tėvu, su jo Sūnumi Jėzumi Kristumi ir Šventąja Dvasia.
""",
    },
]


def get_initial_chunks() -> List[Dict[str, Any]]:
    """Pre-split chunks that bypass the chunker."""
    return [dict(chunk, tags=list(chunk["tags"])) for chunk in INITIAL_CHUNKS]


def get_all_seed_documents() -> List[Dict[str, Any]]:
    """
    Get all seed documents for corpus bootstrap.

    Returns:
        List of {"title", "type", "content"} dictionaries ready for chunking
    """
    documents = []

    for doc in BIBLE_DOCUMENTS:
        documents.append({**doc, "type": "Biblija"})

    for doc in CATECHISM_DOCUMENTS:
        documents.append({**doc, "type": "Katekizmas"})

    return documents
