"""
Static content of the MAR questionnaire.

Every question names its module explicitly through ``module_number``
(the module's order_number). Seeding and recovery resolve modules from
that field only.
"""

MODULES = [
    {'order_number': 1, 'title': 'Mercado', 'description': 'Perguntas sobre seu mercado e posicionamento'},
    {'order_number': 2, 'title': 'Atração', 'description': 'Perguntas sobre captação de clientes'},
    {'order_number': 3, 'title': 'Relacionamento', 'description': 'Perguntas sobre relacionamento com clientes'},
    {'order_number': 4, 'title': 'Monetização', 'description': 'Perguntas sobre modelos de monetização'},
    {'order_number': 5, 'title': 'Produto', 'description': 'Perguntas sobre seu produto ou serviço'},
    {'order_number': 6, 'title': 'Análise', 'description': 'Perguntas sobre análise de dados'},
    {'order_number': 7, 'title': 'Revenue', 'description': 'Perguntas sobre receita e faturamento'},
]

INSTAGRAM_HINT = 'Digite apenas o nome de usuário, sem o @ ou URL completa'
CURRENCY_HINT = 'Informe o valor aproximado em reais, sem pontos ou vírgulas'

QUESTIONS = [
    # Mercado
    {'module_number': 1, 'order_number': 1, 'type': 'text', 'required': True,
     'text': 'Qual o nome da sua empresa?',
     'hint': 'Digite o nome completo da sua empresa conforme registro'},
    {'module_number': 1, 'order_number': 2, 'type': 'radio', 'required': True,
     'text': 'Há quanto tempo sua empresa existe?',
     'hint': 'Selecione a opção que melhor representa o tempo de existência da sua empresa',
     'options': ['Menos de 1 ano', '1-3 anos', '4-7 anos', '8-10 anos', 'Mais de 10 anos']},
    {'module_number': 1, 'order_number': 3, 'type': 'radio', 'required': True,
     'text': 'Em qual setor sua empresa atua?',
     'hint': 'Selecione o setor principal de atuação da sua empresa',
     'options': ['Tecnologia/Software', 'Saúde/Bem-estar', 'Educação', 'Varejo/E-commerce',
                 'Alimentação/Restaurantes', 'Serviços profissionais', 'Outros']},
    {'module_number': 1, 'order_number': 4, 'type': 'textarea', 'required': True,
     'text': 'Quem são seus principais concorrentes?',
     'hint': 'Liste os principais concorrentes do seu negócio'},
    {'module_number': 1, 'order_number': 5, 'type': 'url', 'required': True,
     'text': 'Qual o site da sua empresa?',
     'hint': 'Insira a URL completa do site da sua empresa, começando com http:// ou https://'},
    {'module_number': 1, 'order_number': 6, 'type': 'instagram', 'required': False,
     'text': 'Qual o Instagram da sua empresa?', 'hint': INSTAGRAM_HINT, 'prefix': '@'},

    # Atração
    {'module_number': 2, 'order_number': 1, 'type': 'checkbox', 'required': True,
     'text': 'Quais canais de marketing utiliza atualmente?',
     'hint': 'Selecione todos os canais que sua empresa utiliza regularmente',
     'options': ['Facebook/Instagram Ads', 'Google Ads', 'E-mail Marketing', 'SEO', 'LinkedIn',
                 'TikTok', 'Publicidade offline', 'Outros']},
    {'module_number': 2, 'order_number': 2, 'type': 'radio', 'required': True,
     'text': 'Qual o seu investimento mensal em marketing digital?',
     'hint': 'Selecione a faixa que representa seu investimento mensal em marketing',
     'options': ['Menos de R$ 1.000', 'R$ 1.000 - R$ 5.000', 'R$ 5.001 - R$ 10.000',
                 'R$ 10.001 - R$ 50.000', 'Mais de R$ 50.000']},
    {'module_number': 2, 'order_number': 3, 'type': 'number', 'required': False,
     'text': 'Qual é o seu custo médio de aquisição de cliente (CAC)?', 'hint': CURRENCY_HINT, 'prefix': 'R$'},
    {'module_number': 2, 'order_number': 4, 'type': 'radio', 'required': True,
     'text': 'Qual canal traz mais clientes para o seu negócio?',
     'hint': 'Selecione o canal que mais contribui para aquisição de clientes',
     'options': ['Redes sociais', 'Google/Busca', 'E-mail marketing', 'Indicações', 'Eventos',
                 'Parcerias', 'Outros']},
    {'module_number': 2, 'order_number': 5, 'type': 'instagram', 'required': False,
     'text': 'Instagram do concorrente A', 'hint': INSTAGRAM_HINT, 'prefix': '@'},

    # Relacionamento
    {'module_number': 3, 'order_number': 1, 'type': 'checkbox', 'required': True,
     'text': 'Como você coleta feedback dos seus clientes?',
     'hint': 'Selecione todos os métodos que você utiliza para coletar feedback',
     'options': ['Pesquisas por e-mail', 'Pesquisas no site/app', 'Entrevistas com clientes',
                 'Análise de reviews', 'Chatbot/Formulário de contato', 'Redes sociais',
                 'Não coletamos feedback regularmente']},
    {'module_number': 3, 'order_number': 2, 'type': 'radio', 'required': True,
     'text': 'Qual ferramenta utiliza para gerenciar relacionamento com clientes?',
     'hint': 'Selecione a principal ferramenta de CRM que sua empresa utiliza',
     'options': ['Salesforce', 'HubSpot', 'Pipedrive', 'Zoho CRM', 'RD Station',
                 'Planilhas Excel/Google', 'Não utilizamos CRM', 'Outro']},
    {'module_number': 3, 'order_number': 3, 'type': 'number', 'required': False,
     'text': 'Qual é seu NPS (Net Promoter Score) atual?', 'hint': 'Informe seu NPS atual (de 0 a 100)'},
    {'module_number': 3, 'order_number': 4, 'type': 'checkbox', 'required': True,
     'text': 'Quantos canais de atendimento ao cliente você oferece?',
     'hint': 'Selecione todos os canais de atendimento disponíveis',
     'options': ['E-mail', 'Telefone', 'Chat ao vivo', 'WhatsApp/Telegram', 'Redes sociais',
                 'Formulário no site', 'Suporte presencial']},
    {'module_number': 3, 'order_number': 5, 'type': 'instagram', 'required': False,
     'text': 'Instagram do concorrente B', 'hint': INSTAGRAM_HINT, 'prefix': '@'},

    # Monetização
    {'module_number': 4, 'order_number': 1, 'type': 'radio', 'required': True,
     'text': 'Qual é o modelo de negócio principal da sua empresa?',
     'hint': 'Selecione o principal modelo de negócio da sua empresa',
     'options': ['E-commerce', 'SaaS', 'Marketplace', 'Assinatura/Recorrência', 'Consultoria/Serviços',
                 'Venda direta', 'Franchising', 'Outro']},
    {'module_number': 4, 'order_number': 2, 'type': 'number', 'required': True,
     'text': 'Qual é o valor médio do ticket da sua empresa?', 'hint': CURRENCY_HINT, 'prefix': 'R$'},
    {'module_number': 4, 'order_number': 3, 'type': 'checkbox', 'required': True,
     'text': 'Quais métodos de pagamento você aceita?',
     'hint': 'Selecione todos os métodos de pagamento aceitos',
     'options': ['Cartão de crédito', 'Cartão de débito', 'Pix', 'Boleto', 'Transferência bancária', 'Dinheiro']},
    {'module_number': 4, 'order_number': 4, 'type': 'radio', 'required': True,
     'text': 'Você possui um programa de fidelidade?',
     'hint': 'Indique se sua empresa possui algum programa de fidelidade',
     'options': ['Sim', 'Não', 'Em implantação']},
    {'module_number': 4, 'order_number': 5, 'type': 'instagram', 'required': False,
     'text': 'Instagram do concorrente C', 'hint': INSTAGRAM_HINT, 'prefix': '@'},

    # Produto
    {'module_number': 5, 'order_number': 1, 'type': 'number', 'required': True,
     'text': 'Quantos produtos/serviços diferentes você oferece?',
     'hint': 'Informe o número total de produtos ou serviços oferecidos'},
    {'module_number': 5, 'order_number': 2, 'type': 'radio', 'required': True,
     'text': 'Qual é o seu processo de desenvolvimento de produto?',
     'hint': 'Selecione a metodologia que melhor descreve seu processo',
     'options': ['Ágil/Scrum', 'Cascata', 'Lean/MVP', 'Sob demanda do cliente', 'Não temos processo definido']},
    {'module_number': 5, 'order_number': 3, 'type': 'radio', 'required': True,
     'text': 'Com que frequência você lança novos produtos/serviços?',
     'hint': 'Selecione a frequência média de lançamentos',
     'options': ['Mensalmente', 'Trimestralmente', 'Semestralmente', 'Anualmente', 'Raramente']},
    {'module_number': 5, 'order_number': 4, 'type': 'checkbox', 'required': True, 'max_options': 3,
     'text': 'Quais são seus principais diferenciais competitivos?',
     'hint': 'Selecione os diferenciais mais importantes do seu negócio',
     'options': ['Preço', 'Qualidade', 'Atendimento', 'Inovação', 'Marca', 'Conveniência']},
    {'module_number': 5, 'order_number': 5, 'type': 'textarea', 'required': True,
     'text': 'Descreva seu produto ou serviço principal em detalhes',
     'hint': 'Forneça uma descrição detalhada do seu principal produto ou serviço'},

    # Análise
    {'module_number': 6, 'order_number': 1, 'type': 'checkbox', 'required': True,
     'text': 'Quais ferramentas de análise você utiliza?',
     'hint': 'Selecione todas as ferramentas que sua empresa utiliza regularmente',
     'options': ['Google Analytics', 'Meta Business Suite', 'Power BI', 'Planilhas', 'Hotjar', 'Nenhuma']},
    {'module_number': 6, 'order_number': 2, 'type': 'radio', 'required': True,
     'text': 'Com que frequência você analisa dados de desempenho?',
     'hint': 'Selecione a frequência com que analisa dados de performance',
     'options': ['Diariamente', 'Semanalmente', 'Mensalmente', 'Raramente', 'Nunca']},
    {'module_number': 6, 'order_number': 3, 'type': 'number', 'required': False,
     'text': 'Qual é a sua taxa de conversão média?',
     'hint': 'Informe a taxa de conversão em porcentagem (apenas números)'},
    {'module_number': 6, 'order_number': 4, 'type': 'checkbox', 'required': True, 'max_options': 3,
     'text': 'Quais métricas você considera mais importantes?',
     'hint': 'Selecione as métricas mais importantes para seu negócio',
     'options': ['Faturamento', 'CAC', 'LTV', 'Churn', 'Ticket médio', 'Taxa de conversão', 'NPS']},
    {'module_number': 6, 'order_number': 5, 'type': 'textarea', 'required': True,
     'text': 'Como você utiliza dados para tomar decisões estratégicas?',
     'hint': 'Descreva como sua empresa utiliza dados para decisões estratégicas'},

    # Revenue
    {'module_number': 7, 'order_number': 1, 'type': 'radio', 'required': True,
     'text': 'Qual foi seu faturamento no último ano?',
     'hint': 'Selecione a faixa que representa seu faturamento anual',
     'options': ['Até R$ 360 mil', 'R$ 360 mil - R$ 1 milhão', 'R$ 1 milhão - R$ 4,8 milhões',
                 'R$ 4,8 milhões - R$ 10 milhões', 'Acima de R$ 10 milhões']},
    {'module_number': 7, 'order_number': 2, 'type': 'radio', 'required': True,
     'text': 'Qual é a sua margem de lucro média?',
     'hint': 'Selecione a faixa que representa sua margem de lucro',
     'options': ['Negativa', 'Até 10%', '10% - 20%', '20% - 30%', 'Acima de 30%']},
    {'module_number': 7, 'order_number': 3, 'type': 'radio', 'required': True,
     'text': 'Qual é o seu objetivo de crescimento para o próximo ano?',
     'hint': 'Selecione a faixa que representa seu objetivo de crescimento',
     'options': ['Até 10%', '10% - 30%', '30% - 50%', '50% - 100%', 'Mais de 100%']},
    {'module_number': 7, 'order_number': 4, 'type': 'checkbox', 'required': True,
     'text': 'Quais são suas principais fontes de receita?',
     'hint': 'Selecione todas as fontes de receita relevantes',
     'options': ['Venda de produtos', 'Prestação de serviços', 'Assinaturas', 'Licenciamento',
                 'Publicidade', 'Comissões']},
    {'module_number': 7, 'order_number': 5, 'type': 'number', 'required': False,
     'text': 'Qual é o seu LTV (Lifetime Value) médio?', 'hint': CURRENCY_HINT, 'prefix': 'R$'},
]
