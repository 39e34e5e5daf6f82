"""
Keyword based section assignment for ingested articles.

Each section has a keyword list; a keyword found in the lower-cased
``"{title} {description}"`` adds a weight that grows with its length. A
short ladder of priority terms (star athletes, celebrities, Argentine
politics, markets, foreign capitals) overrides the raw scores.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = 'Nacionales'

# Lists may repeat a term; every occurrence counts towards the score.
CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    'Internacionales': (
        'estados unidos', 'eeuu', 'usa', 'united states', 'washington', 'nueva york', 'california', 'texas',
        'florida', 'chicago', 'boston', 'las vegas', 'miami',
        'china', 'beijing', 'shanghai', 'rusia', 'moscú', 'putin', 'francia', 'parís', 'macron', 'alemania',
        'berlín', 'scholz', 'reino unido', 'londres', 'inglaterra',
        'japón', 'tokio', 'india', 'nueva delhi', 'brasil', 'brasilia', 'sao paulo', 'lula', 'méxico',
        'ciudad de méxico', 'españa', 'madrid', 'barcelona',
        'italia', 'roma', 'milán', 'canadá', 'ottawa', 'toronto', 'trudeau', 'australia', 'sidney', 'canberra',
        'corea del sur', 'seúl',
        'israel', 'tel aviv', 'jerusalén', 'palestina', 'gaza', 'ucrania', 'kiev', 'zelensky', 'venezuela',
        'caracas', 'maduro',
        'colombia', 'bogotá', 'perú', 'lima', 'bolivia', 'la paz', 'ecuador', 'quito', 'paraguay', 'asunción',
        'uruguay', 'montevideo',
        'onu', 'naciones unidas', 'otan', 'unión europea', 'mercosur', 'g7', 'g20', 'fmi', 'banco mundial', 'oea',
        'unesco', 'unicef', 'fifa', 'uefa',
        'internacional', 'mundial', 'global', 'exterior', 'embajada', 'embajador', 'canciller', 'diplomacia',
        'tratado', 'acuerdo internacional',
        'cumbre internacional', 'conferencia internacional', 'guerra', 'conflicto internacional', 'refugiados',
        'migración internacional',
        'fronteras', 'comercio exterior', 'exportación internacional', 'importación internacional',
        'relaciones exteriores',
        'biden', 'trump', 'kamala harris', 'putin', 'xi jinping', 'macron', 'scholz', 'trudeau', 'modi', 'lula',
        'maduro', 'zelensky',
        'papa francisco', 'vaticano', 'elon musk', 'bill gates',
    ),
    'Deportes': (
        'fútbol', 'football', 'soccer', 'gol', 'goles', 'partido', 'liga', 'champions', 'mundial', 'copa',
        'selección', 'equipo', 'jugador', 'jugadores',
        'entrenador', 'técnico', 'referee', 'árbitro', 'estadio', 'cancha', 'penales', 'offside', 'tarjeta',
        'expulsión',
        'boca', 'river', 'racing', 'independiente', 'san lorenzo', 'estudiantes', 'gimnasia', 'lanús', 'banfield',
        'arsenal',
        'barcelona', 'real madrid', 'manchester', 'liverpool', 'chelsea', 'juventus', 'milan', 'inter', 'psg',
        'bayern',
        'messi', 'lionel messi', 'cristiano ronaldo', 'neymar', 'mbappé', 'haaland', 'benzema', 'lewandowski',
        'modric',
        'scaloni', 'guardiola', 'ancelotti', 'mourinho', 'klopp', 'xavi', 'simeone',
        'fórmula 1', 'formula 1', 'f1', 'gran premio', 'colapinto', 'franco colapinto', 'verstappen', 'hamilton',
        'leclerc', 'sainz', 'norris',
        'red bull', 'ferrari', 'mercedes', 'mclaren', 'williams', 'aston martin', 'alpine', 'circuito',
        'pole position', 'podio',
        'automovilismo', 'turismo carretera', 'tc', 'rally', 'motogp', 'rossi', 'márquez',
        'basketball', 'básquet', 'nba', 'lebron james', 'curry', 'jordan', 'ginóbili', 'scola', 'campazzo',
        'tenis', 'wimbledon', 'roland garros', 'us open', 'australian open', 'djokovic', 'nadal', 'federer',
        'del potro', 'schwartzman',
        'golf', 'tiger woods', 'natación', 'atletismo', 'maratón', 'sprint', 'salto', 'lanzamiento',
        'boxeo', 'mma', 'ufc', 'canelo', 'pacquiao', 'mayweather', 'rugby', 'pumas', 'all blacks', 'hockey',
        'leonas',
        'béisbol', 'mlb', 'volleyball', 'ciclismo', 'tour de france', 'giro', 'vuelta', 'triatlón',
        'olimpiadas', 'juegos olímpicos', 'paralímpicos', 'mundial', 'campeonato', 'torneo', 'competencia',
        'copa américa', 'eurocopa',
        'deporte', 'deportivo', 'deportes', 'atleta', 'deportista', 'victoria', 'derrota', 'empate', 'récord',
        'marca', 'medalla', 'trofeo', 'premio deportivo',
        'entrenamiento', 'lesión', 'recuperación', 'fichaje', 'transferencia', 'contrato deportivo',
    ),
    'Espectaculos': (
        'espectáculo', 'espectáculos', 'entretenimiento', 'celebridad', 'celebridades', 'famoso', 'famosa',
        'artista', 'cantante', 'cantantes',
        'actor', 'actriz', 'actores', 'director', 'productor', 'estrella', 'galán', 'diva', 'ídolo',
        'susana giménez', 'marcelo tinelli', 'mirtha legrand', 'jorge lanata', 'andy kusnetzoff', 'marley',
        'guido kaczka',
        'shakira', 'jennifer lopez', 'brad pitt', 'leonardo dicaprio', 'angelina jolie', 'taylor swift',
        'beyoncé', 'rihanna',
        'justin bieber', 'ariana grande', 'selena gomez', 'kim kardashian', 'jennifer aniston', 'tom cruise',
        'will smith',
        'hollywood', 'netflix', 'disney', 'marvel', 'dc comics', 'warner', 'universal', 'paramount', 'hbo',
        'amazon prime',
        'oscar', 'grammy', 'emmy', 'globos de oro', 'cannes', 'festival de cine', 'alfombra roja', 'premier',
        'estreno',
        'showmatch', 'gran hermano', 'masterchef', 'la voz', 'bailando', 'cantando',
        'música', 'canción', 'canciones', 'álbum', 'disco', 'single', 'hit', 'chart', 'billboard', 'concierto',
        'recital', 'show',
        'gira', 'tour', 'festival musical', 'banda', 'grupo musical', 'solista', 'video musical', 'clip',
        'spotify', 'youtube music',
        'reggaeton', 'pop', 'rock', 'trap', 'cumbia', 'tango', 'folclore', 'cuarteto',
        'película', 'film', 'films', 'cine', 'cinema', 'serie', 'series', 'temporada', 'episodio',
        'programa de tv', 'reality show',
        'telenovela', 'novela', 'documental', 'animación', 'streaming', 'plataforma', 'taquilla', 'box office',
        'teatro', 'obra teatral', 'musical', 'comedia musical', 'danza', 'ballet', 'ópera', 'circo', 'stand up',
        'humor',
        'romance', 'noviazgo', 'relación', 'separación', 'divorcio', 'matrimonio', 'boda', 'embarazo', 'bebé',
        'familia',
        'escándalo', 'polémica', 'controversia', 'rumor', 'vida privada', 'paparazzi', 'instagram', 'twitter',
        'tiktok',
        'redes sociales', 'influencer', 'youtuber', 'tiktoker', 'streaming', 'twitch',
    ),
    'Economía': (
        'economía', 'económico', 'económica', 'mercado', 'mercados', 'bolsa', 'bursátil', 'wall street', 'nasdaq',
        'dow jones',
        'inflación', 'deflación', 'pib', 'producto bruto', 'crecimiento económico', 'recesión', 'crisis económica',
        'recuperación económica',
        'estanflación', 'hiperinflación', 'devaluación', 'revaluación',
        'finanzas', 'financiero', 'financiera', 'banco', 'bancos', 'banking', 'banca', 'crédito', 'préstamo',
        'hipoteca',
        'inversión', 'inversiones', 'inversor', 'inversionista', 'accionista', 'acciones', 'dividendos', 'bonos',
        'títulos',
        'fondo de inversión', 'mutual fund', 'etf', 'portfolio', 'cartera',
        'dólar', 'dólares', 'euro', 'euros', 'peso', 'pesos', 'moneda', 'divisa', 'tipo de cambio', 'cotización',
        'forex',
        'bitcoin', 'ethereum', 'criptomoneda', 'criptomonedas', 'crypto', 'oro', 'plata', 'petróleo', 'brent',
        'commodities',
        'empresa', 'empresas', 'corporación', 'compañía', 'startup', 'unicornio', 'negocio', 'comercio', 'retail',
        'manufactura',
        'industria', 'industrial', 'fábrica', 'producción', 'productividad', 'ventas', 'facturación', 'ganancias',
        'pérdidas',
        'balance', 'estado financiero', 'activos', 'pasivos', 'patrimonio',
        'empleo', 'desempleo', 'trabajo', 'trabajadores', 'salario', 'salarios', 'sueldo', 'sueldos',
        'remuneración',
        'sindicato', 'gremio', 'huelga', 'paro', 'negociación salarial', 'aguinaldo', 'jubilación', 'pensión',
        'ipc', 'índice de precios', 'índice', 'rating', 'calificación', 'riesgo país', 'reservas', 'bcra',
        'banco central',
        'exportación', 'exportaciones', 'importación', 'importaciones', 'balanza comercial', 'déficit',
        'superávit',
        'presupuesto', 'gasto público', 'recaudación', 'impuestos', 'afip', 'monotributo', 'iva', 'ganancias',
        'energía', 'petróleo', 'gas', 'electricidad', 'minería', 'agricultura', 'ganadería', 'soja', 'trigo',
        'maíz', 'carne',
        'tecnología', 'software', 'fintech', 'startup', 'innovación', 'digitalización',
    ),
    'Nacionales': (
        'gobierno', 'presidente', 'presidencia', 'casa rosada', 'congreso', 'senado', 'diputados', 'ministro',
        'ministerio', 'secretario',
        'gabinete', 'consejo de ministros', 'jefatura de gabinete', 'vicepresidente',
        'política', 'político', 'políticos', 'elecciones', 'campaña', 'voto', 'urnas', 'ballotage', 'primarias',
        'paso', 'sufragio',
        'oficialismo', 'oposición', 'alianza', 'coalición', 'bloque', 'bancada',
        'conicet', 'inta', 'anses', 'afip', 'bcra', 'banco central', 'indec', 'justicia', 'corte suprema',
        'poder judicial',
        'procuración', 'fiscalía', 'defensoría', 'ombudsman', 'auditoría',
        'peronismo', 'kirchnerismo', 'macrismo', 'radical', 'ucr', 'pro', 'frente de todos',
        'juntos por el cambio',
        'la libertad avanza', 'milei', 'cristina kirchner', 'macri', 'massa', 'bullrich', 'larreta',
        'ley', 'decreto', 'resolución', 'reforma', 'constitución', 'código', 'reglamento', 'norma', 'ordenanza',
        'proyecto de ley', 'sanción', 'promulgación', 'veto',
        'argentina', 'argentino', 'argentinos', 'nacional', 'país', 'nación',
        'buenos aires', 'caba', 'capital federal', 'córdoba', 'rosario', 'mendoza', 'tucumán', 'salta', 'jujuy',
        'santiago del estero', 'catamarca', 'la rioja', 'san juan', 'san luis', 'neuquén', 'río negro', 'chubut',
        'santa cruz', 'tierra del fuego', 'misiones', 'corrientes', 'entre ríos', 'santa fe', 'chaco', 'formosa',
        'la pampa',
    ),
    'Regionales': (
        'región', 'regional', 'provincia', 'provincial', 'local', 'municipio', 'municipal', 'comuna', 'comunal',
        'intendente', 'alcalde', 'gobernador', 'concejal', 'consejo deliberante',
        'vecinos', 'barrio', 'ciudad', 'pueblo', 'localidad', 'distrito', 'zona', 'área metropolitana',
        'conurbano',
        'servicios públicos', 'transporte público', 'colectivo', 'subte', 'tren', 'agua potable', 'cloacas',
        'gas',
        'electricidad', 'alumbrado', 'recolección', 'residuos', 'basura',
        'baches', 'semáforos', 'tránsito', 'obras públicas', 'pavimentación', 'asfalto', 'limpieza',
        'mantenimiento',
        'seguridad', 'policía local', 'bomberos', 'hospital municipal', 'centro de salud',
    ),
    'Medio Ambiente': (
        'medio ambiente', 'ambiental', 'ecología', 'ecológico', 'sustentabilidad', 'sostenible', 'verde', 'clima',
        'climático',
        'calentamiento global', 'cambio climático', 'emisiones', 'carbono', 'co2', 'contaminación', 'polución',
        'smog',
        'reciclaje', 'energía renovable', 'solar', 'eólica', 'hidráulica', 'biomasa', 'geotérmica',
        'deforestación', 'biodiversidad', 'extinción', 'conservación', 'parque nacional', 'reserva natural',
        'fauna', 'flora',
        'sequía', 'inundación', 'huracán', 'tornado', 'terremoto', 'tsunami', 'desastre natural',
        'fenómeno climático',
        'efecto invernadero', 'capa de ozono', 'protocolo de kyoto', 'acuerdo de parís',
    ),
    'Opinión': (
        'opinión', 'editorial', 'análisis', 'reflexión', 'comentario', 'perspectiva', 'punto de vista', 'crítica',
        'ensayo',
        'columna', 'artículo de opinión', 'debate', 'controversia', 'polémica', 'discusión', 'carta de lectores',
    ),
}

SPORTS_PRIORITY = (
    'messi', 'colapinto', 'franco colapinto', 'fórmula 1', 'formula 1', 'f1', 'gran premio',
    'verstappen', 'hamilton', 'leclerc', 'champions', 'mundial', 'copa', 'barcelona', 'real madrid',
    'boca', 'river', 'selección argentina', 'scaloni',
)
ENTERTAINMENT_PRIORITY = (
    'shakira', 'taylor swift', 'netflix', 'disney', 'hollywood', 'oscar', 'grammy',
    'susana giménez', 'tinelli', 'mirtha legrand', 'gran hermano', 'masterchef',
)
NATIONAL_POLITICS_PRIORITY = (
    'milei', 'cristina kirchner', 'macri', 'casa rosada', 'congreso', 'peronismo',
    'gabinete', 'ministro', 'presidente argentino', 'gobierno argentino',
)
ECONOMY_PRIORITY = (
    'dólar', 'inflación', 'bolsa', 'mercado', 'mercados', 'inversión', 'banco', 'empresa', 'crisis económica',
    'pib', 'recesión', 'wall street', 'nasdaq', 'bitcoin', 'euro', 'economía', 'económico', 'financiero',
    'bursátil', 'dow jones', 'cotización', 'devaluación', 'criptomoneda',
)
INTERNATIONAL_PRIORITY = (
    'estados unidos', 'trump', 'biden', 'china', 'putin', 'washington', 'nueva york',
    'california', 'texas', 'florida', 'beijing', 'moscú', 'londres', 'parís', 'berlín',
)


def keyword_weight(keyword: str) -> int:
    """Weight contributed by a matched keyword; longer phrases count more."""
    length = len(keyword)
    if length > 15:
        weight = 4
    elif length > 10:
        weight = 3
    elif length > 5:
        weight = 2
    else:
        weight = 1
    if ' ' in keyword and length > 8:
        weight += 1
    return weight


def _contains_any(text: str, terms: Sequence[str]) -> bool:
    return any(term in text for term in terms)


def score_categories(text: str, keywords: Optional[Dict[str, Sequence[str]]] = None) -> List[Tuple[str, int]]:
    """Return ``(category, score)`` pairs with score > 0, highest first.

    Ties keep the order of the keyword table.
    """
    table = keywords or CATEGORY_KEYWORDS
    scores = []
    for category, words in table.items():
        score = sum(keyword_weight(word) for word in words if word in text)
        if score > 0:
            scores.append((category, score))
    scores.sort(key=lambda item: item[1], reverse=True)
    return scores


def categorize_article(title: str, description: Optional[str] = None,
                       keywords: Optional[Dict[str, Sequence[str]]] = None) -> str:
    """Assign a newspaper section to an article from its title and description."""
    text = f"{title or ''} {description or ''}".lower()
    scores = score_categories(text, keywords)

    if not scores:
        if _contains_any(text, ('argentina', 'argentino', 'nacional', 'país')):
            return 'Nacionales'
        if _contains_any(text, ('mundo', 'global', 'internacional')):
            return 'Internacionales'
        return DEFAULT_CATEGORY

    if _contains_any(text, SPORTS_PRIORITY):
        return 'Deportes'
    if _contains_any(text, ENTERTAINMENT_PRIORITY):
        return 'Espectaculos'
    if _contains_any(text, NATIONAL_POLITICS_PRIORITY):
        return 'Nacionales'

    has_economy_terms = _contains_any(text, ECONOMY_PRIORITY)
    if (has_economy_terms
            and _contains_any(text, ('bolsa', 'crisis económica', 'mercados'))
            and _contains_any(text, ('londres', 'europa'))):
        return 'Economía'

    if _contains_any(text, INTERNATIONAL_PRIORITY):
        return 'Internacionales'
    if has_economy_terms:
        return 'Economía'

    top_category, top_score = scores[0]
    if top_score >= 3:
        return top_category

    by_category = dict(scores)
    national = by_category.get('Nacionales', 0)
    international = by_category.get('Internacionales', 0)
    if national and international and international > national:
        return 'Internacionales'
    return top_category


class Categorizer:
    """Bound categorizer using the config's keyword overrides when present."""

    def __init__(self, keywords: Optional[Dict[str, Sequence[str]]] = None):
        self.keywords = keywords or CATEGORY_KEYWORDS
        if keywords:
            logger.debug(f"Using custom keyword table with {len(keywords)} categories")

    def __call__(self, title: str, description: Optional[str] = None) -> str:
        return categorize_article(title, description, self.keywords)
