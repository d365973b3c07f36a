class InternalURIs:
    API = "/api"
    QUERY = API + "/query"
    QUERY_SUGGESTIONS = QUERY + "/suggestions"
    VALIDATE = API + "/validate"
    STATS = API + "/stats"
    STATS_RESET = STATS + "/reset"
    CACHE = API + "/cache"
    HEALTH = API + "/health"
    DOCUMENT = API + "/document"
    DOCUMENT_STRUCTURE = DOCUMENT + "/structure"
    DOCUMENT_OVERVIEW = DOCUMENT + "/overview"
    DOCUMENT_SECTION = DOCUMENT + "/section/{section_id}"
    DOCUMENT_SEARCH = DOCUMENT + "/search/{term}"


QUERY_SUGGESTIONS = (
    "How will this bill affect my taxes as a middle-class family?",
    "What changes are there for small business owners?",
    "How does this impact SNAP benefits and food assistance?",
    "What defense spending changes are included?",
    "How will this affect oil and gas development?",
    "What environmental programs are being cut or funded?",
    "How does this impact agricultural programs?",
    "What banking and financial reforms are included?",
    "How will this affect federal employee benefits?",
    "What changes are there to tax deductions?",
)
